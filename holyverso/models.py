from typing import List, Optional
from pydantic import BaseModel


class DailyVerse(BaseModel):
    date: str
    entry_id: int
    entry_kind: str
    reference: str
    text: str
    version_id: int
    version_code: str
    version_name: str
    theme: Optional[str] = None
    source: str
    liked: bool = False
    shared: bool = False


class DailyVerseResponse(BaseModel):
    data: DailyVerse


class ChapterVerse(BaseModel):
    number: Optional[int] = None
    text: str
    study: Optional[str] = None


class Chapter(BaseModel):
    book: str
    chapter: int
    reference: str
    num_chapters: Optional[int] = None
    version_code: str
    version_name: str
    verses: List[ChapterVerse]


class ChapterResponse(BaseModel):
    data: Chapter


class InteractionResult(BaseModel):
    entry_id: int
    liked: bool
    shared: bool
    theme: Optional[str] = None
    score: Optional[float] = None


class InteractionResponse(BaseModel):
    data: InteractionResult


class ThemePreference(BaseModel):
    theme: str
    like_count: int
    share_count: int
    score: float
    last_interaction: Optional[str] = None


class PreferencesResponse(BaseModel):
    data: List[ThemePreference]


class ResetResult(BaseModel):
    archived: int


class ResetResponse(BaseModel):
    data: ResetResult


class SavedVerse(BaseModel):
    id: int
    entry_id: int
    entry_kind: str
    reference: str
    text: str
    version_code: str
    version_name: str
    theme: Optional[str] = None
    saved_at: str


class SavedVerseResponse(BaseModel):
    data: SavedVerse


class SavedVersePage(BaseModel):
    items: List[SavedVerse]
    next_cursor: Optional[int] = None


class SavedVerseListResponse(BaseModel):
    data: SavedVersePage


class SavedVerseDeleteResult(BaseModel):
    deleted: bool


class SavedVerseDeleteResponse(BaseModel):
    data: SavedVerseDeleteResult


class BibleVersion(BaseModel):
    id: int
    api_code: str
    name: str
    language: str


class BibleVersionsResponse(BaseModel):
    data: List[BibleVersion]


class BibleBook(BaseModel):
    name: str
    abbrev: str
    chapters: int
    testament: Optional[str] = None


class BibleBooksResponse(BaseModel):
    data: List[BibleBook]


class UserSettings(BaseModel):
    preferred_version_id: Optional[int] = None
    timezone: Optional[str] = None
    updated_at: Optional[str] = None


class UserSettingsResponse(BaseModel):
    data: UserSettings


class UserSettingsUpdateRequest(BaseModel):
    preferred_version_id: Optional[int] = None
    timezone: Optional[str] = None
