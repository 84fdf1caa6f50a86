import math

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Annotated, Optional, Union

# Dropped from the wire form when unset
OPTIONAL_WIRE_FIELDS = ("mood", "language", "title", "artist", "image")


def _non_negative(v):
    if not math.isfinite(v) or v < 0:
        raise ValueError("playback position must be a finite non-negative number")
    return v


# Opaque playback cursor; ints are kept as ints
PlaybackPosition = Annotated[Union[int, float], AfterValidator(_non_negative)]


class RoomState(BaseModel):
    """Shared playback state of one room, as stored and as broadcast."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    current_song: Optional[str] = None
    current_song_id: Optional[str] = None
    current_time: PlaybackPosition = 0
    is_playing: bool = False
    users: list[str] = Field(default_factory=list)
    leader_id: str
    mood: Optional[str] = None
    language: Optional[str] = None
    title: Optional[str] = None
    artist: Optional[str] = None
    image: Optional[str] = None

    def to_wire(self) -> dict:
        data = self.model_dump(by_alias=True)
        for name in OPTIONAL_WIRE_FIELDS:
            if data.get(name) is None:
                data.pop(name, None)
        return data


class RoomJoinedResponse(BaseModel):
    room_id: str
    state: RoomState

    def to_wire(self) -> dict:
        return {"roomId": self.room_id, "state": self.state.to_wire()}
