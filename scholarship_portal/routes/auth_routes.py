from fastapi import APIRouter, Response
from pydantic import BaseModel, ConfigDict, field_validator

from scholarship_portal.auth import jwt_handler
from scholarship_portal.auth.access import normalize_email
from scholarship_portal.core import config

router = APIRouter(tags=['auth'])

RESERVED_CLAIMS = {'exp', 'iat', 'nbf'}


class TokenRequest(BaseModel):
    model_config = ConfigDict(extra='allow')

    email: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = normalize_email(value)
        if not normalized:
            raise ValueError('Email is required.')
        return normalized


def _cookie_options() -> dict:
    return {
        'httponly': True,
        'secure': config.IS_PRODUCTION,
        'samesite': 'none' if config.IS_PRODUCTION else 'strict',
    }


@router.post('/jwt')
def issue_token(data: TokenRequest, response: Response):
    claims = {key: value for key, value in data.model_dump().items() if key not in RESERVED_CLAIMS}
    token = jwt_handler.create_access_token(claims)

    if config.AUTH_TRANSPORT == 'cookie':
        response.set_cookie(
            config.AUTH_COOKIE_NAME,
            token,
            max_age=config.JWT_EXPIRES_MINUTES * 60,
            **_cookie_options(),
        )
        return {'success': True}

    return {'token': token}


@router.post('/logout')
def logout(response: Response):
    response.delete_cookie(config.AUTH_COOKIE_NAME, **_cookie_options())
    return {'success': True}
