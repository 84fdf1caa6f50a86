from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Optional

from schemas.rooms import PlaybackPosition


class ClientEvent(str, Enum):
    CREATE_ROOM = "createRoom"
    JOIN_ROOM = "joinRoom"
    PLAY_PAUSE = "playPause"
    CHANGE_SONG = "changeSong"
    CHANGE_MOOD_SONG = "changeMoodSong"
    SEEK = "seek"


class ServerEvent(str, Enum):
    ROOM_CREATED = "roomCreated"
    ROOM_JOINED = "roomJoined"
    UPDATE_STATE = "updateState"
    ERROR = "error"


class EventEnvelope(BaseModel):
    """One JSON frame on the socket, in either direction."""

    event: str = Field(min_length=1)
    data: Any = None


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    room_id: str


class PlayPausePayload(_Payload):
    is_playing: bool
    current_time: PlaybackPosition


class ChangeSongPayload(_Payload):
    song_url: str
    song_id: str
    title: Optional[str] = None
    artist: Optional[str] = None
    image: Optional[str] = None


class ChangeMoodSongPayload(_Payload):
    song_url: str
    song_id: str
    mood: str
    language: str
    title: Optional[str] = None
    artist: Optional[str] = None


class SeekPayload(_Payload):
    current_time: PlaybackPosition
