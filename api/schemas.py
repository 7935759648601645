"""Pydantic schemas for API requests and responses."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Round schemas
class StartRoundRequest(BaseModel):
    """Request to start a round in a channel."""

    players: list[str] = Field(..., min_length=1, description="Participant identities, in seating order")

    @field_validator("players")
    @classmethod
    def players_distinct(cls, players: list[str]) -> list[str]:
        players = [p.strip() for p in players]
        if any(not p for p in players):
            raise ValueError("Player identities must not be empty")
        if len(set(players)) != len(players):
            raise ValueError("Players must be distinct")
        return players


class StartRoundResponse(BaseModel):
    """A started round and the tokens its players post moves with."""

    channel_id: str
    round_id: str
    players: list[str]
    tokens: dict[str, str]


class ChatMessageRequest(BaseModel):
    """A line of chat posted into a channel."""

    token: str
    content: str = Field(..., max_length=200)


class ChatMessageResponse(BaseModel):
    """Whether a chat line reached an active round."""

    accepted: bool


# Table schemas
class CardView(BaseModel):
    """Card representation."""

    model_config = ConfigDict(from_attributes=True)

    rank: str
    suit: str
    value: int
    face_down: bool = False


class HandView(BaseModel):
    """Hand representation."""

    cards: list[CardView]
    total: int | None
    soft: bool | None
    status: str
    summary: str


class ParticipantView(BaseModel):
    """A participant's hands."""

    identity: str
    hands: list[HandView]


class TableSnapshot(BaseModel):
    """Everything a renderer shows for one round."""

    channel_id: str
    round_id: str
    state: str
    finished: bool = False
    dealer: HandView | None
    participants: list[ParticipantView]
    message: str


class TableResponse(BaseModel):
    """Latest snapshot of each round in a channel."""

    channel_id: str
    rounds: list[TableSnapshot]
