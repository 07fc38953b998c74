"""Request payloads for game operations.

Every handler validates its JSON body against one of these models before any
store access. Field names accept both the camelCase wire names used by the
storefront client (``sessionId``) and snake_case (``session_id``).
"""

import json
from typing import List, Literal, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from phraseotomy.errors import ValidationFailed
from phraseotomy.models import LOBBY_CODE_LENGTH, TIMEOUT_SENTINEL


class RequestModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        str_strip_whitespace=True,
    )


def _identity():
    return Field(min_length=1, max_length=64)


class CreateSessionRequest(RequestModel):
    host_id: str = Field(min_length=1, max_length=64,
                         validation_alias=AliasChoices('hostId', 'hostCustomerId', 'host_id'))
    host_name: Optional[str] = Field(None, max_length=100,
                                     validation_alias=AliasChoices('hostName', 'hostCustomerName', 'host_name'))
    game_name: Optional[str] = Field(None, max_length=120)
    theme_id: Optional[str] = Field(None, max_length=64)
    game_mode: str = Field('live', max_length=32)
    story_time_seconds: Optional[int] = Field(None, gt=0)
    guess_time_seconds: Optional[int] = Field(None, gt=0)


class JoinLobbyRequest(RequestModel):
    lobby_code: str = Field(min_length=LOBBY_CODE_LENGTH, max_length=LOBBY_CODE_LENGTH)
    player_name: str = Field(min_length=1, max_length=100)
    player_id: str = _identity()

    @field_validator('lobby_code')
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.upper()


class LeaveLobbyRequest(RequestModel):
    session_id: int
    player_id: str = _identity()


class KickPlayerRequest(RequestModel):
    session_id: int
    player_id_to_kick: str = _identity()
    host_id: str = _identity()


class EndLobbyRequest(RequestModel):
    session_id: int
    host_id: str = Field(min_length=1, max_length=64,
                         validation_alias=AliasChoices('hostId', 'hostCustomerId', 'host_id'))


class TurnOrderUpdate(RequestModel):
    player_id: str = _identity()
    turn_order: int = Field(ge=1)


class UpdateTurnOrderRequest(RequestModel):
    session_id: int
    updates: List[TurnOrderUpdate] = Field(min_length=1)


class RegisterAudioRequest(RequestModel):
    session_id: int
    player_id: str = _identity()
    audio_url: str = Field(min_length=1, max_length=2048)
    select: bool = False


class StartGameRequest(RequestModel):
    session_id: int
    selected_audio_id: Optional[str] = Field(None, max_length=64)


class StartTurnRequest(RequestModel):
    session_id: int
    player_id: str = _identity()
    theme_id: Optional[str] = Field(None, max_length=64,
                                    validation_alias=AliasChoices('themeId', 'selectedThemeId', 'theme_id'))
    theme_name: Optional[str] = Field(None, max_length=120)
    element_name: Optional[str] = Field(None, max_length=200)
    secret_element: Optional[str] = Field(None, max_length=200)
    turn_mode: Literal['audio', 'elements'] = 'audio'


class SetTurnSecretRequest(RequestModel):
    turn_id: int
    secret_element: str = Field(min_length=1, max_length=200,
                                validation_alias=AliasChoices('secretElement', 'secretElementId', 'secret_element'))


class SubmitGuessRequest(RequestModel):
    turn_id: int
    player_id: str = _identity()
    content: Optional[str] = Field(None, max_length=200,
                                   validation_alias=AliasChoices('content', 'guess'))
    is_timeout: bool = False

    @model_validator(mode='after')
    def content_or_timeout(self):
        if self.is_timeout:
            self.content = TIMEOUT_SENTINEL
        elif not self.content:
            raise ValueError('content is required unless is_timeout is set')
        return self


class AutoSubmitTimeoutRequest(RequestModel):
    session_id: int
    round_number: int = Field(ge=1)
    player_id: str = _identity()
    reason: Optional[str] = Field(None, max_length=200)


class SkipTurnRequest(RequestModel):
    session_id: int
    reason: Optional[str] = Field(None, max_length=200)


def parse_request(model, data, **overrides):
    """Validate ``data`` against ``model``; path parameters in ``overrides`` win.

    Raises ValidationFailed with pydantic's field errors as details.
    """
    payload = dict(data or {})
    for name, value in overrides.items():
        payload.pop(to_camel(name), None)
        payload[name] = value
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise ValidationFailed('Invalid request', details=json.loads(exc.json(include_url=False)))
