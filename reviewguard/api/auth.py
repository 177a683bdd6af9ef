from typing import Optional

from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired

from reviewguard.shared.settings import settings

serializer = URLSafeTimedSerializer(settings.session_secret, salt="reviewguard-user-token")


def sign_token(user_id: str) -> str:
    return serializer.dumps({"sub": user_id})


def verify_token(token: str, max_age_seconds: Optional[int] = None) -> Optional[dict]:
    try:
        return serializer.loads(token, max_age=max_age_seconds or settings.token_max_age_seconds)
    except (BadSignature, SignatureExpired):
        return None
