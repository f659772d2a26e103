from pydantic import BaseModel, Field, field_validator
from typing import Optional


class TargetConfig(BaseModel):
    url: str
    key: str
    proxy: Optional[str] = Field(default=None)
    timeout: int = 10
    verbose: bool = False
    rest_path: str = "/rest/v1"
    batch_size: int = Field(default=5, ge=1)
    sample_limit: int = Field(default=15, ge=1, le=15)
    max_attempts: int = Field(default=3, ge=1)
    batch_delay: float = Field(default=0.2, ge=0)

    @field_validator("url")
    @classmethod
    def _strip_url(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @field_validator("rest_path")
    @classmethod
    def _normalize_rest_path(cls, v: str) -> str:
        return "/" + v.strip("/") if v.strip("/") else ""

    @property
    def schema_endpoint(self) -> str:
        return f"{self.rest_path}/"


class SensitivityRules:
    """
    Term and value tables used by the classifier. Bump VERSION whenever a
    pattern or a severity assignment changes, reports carry it.
    """
    VERSION = "1.1"

    COLUMN_PATTERNS = {
        "auth": [
            r"password|passwd|pwd",
            r"api[_-]?key|apikey",
            r"secret|private[_-]?key",
            r"token|access[_-]?token|refresh[_-]?token",
            r"jwt|auth[_-]?token",
            r"session[_-]?id|session[_-]?key",
        ],
        "pii": [
            r"email|e[_-]?mail",
            r"phone|mobile|telephone",
            r"ssn|social[_-]?security",
            r"passport|driver[_-]?license",
            r"birth[_-]?date|dob|date[_-]?of[_-]?birth",
            r"address|home[_-]?address|street",
            r"full[_-]?name|first[_-]?name|last[_-]?name",
        ],
        "financial": [
            r"credit[_-]?card|card[_-]?number|cc[_-]?num",
            r"cvv|cvc|card[_-]?code",
            r"iban|routing[_-]?number|account[_-]?number",
            r"bank[_-]?account|financial",
            r"payment|billing",
        ],
        "health": [
            r"medical|health[_-]?record",
            r"diagnosis|prescription",
            r"patient[_-]?id|mrn",
        ],
    }

    # checked critical first, first hit wins; anything unlisted is low
    FIELD_SEVERITY = {
        "critical": [
            "password", "passwd", "pwd", "secret", "private_key", "api_key", "apikey",
            "credit_card", "card_number", "cvv", "ssn", "social_security",
        ],
        "high": [
            "email", "phone", "token", "jwt", "session_id", "passport", "driver_license",
            "session_key", "bank_account", "iban", "medical", "health_record", "diagnosis",
            "prescription", "patient_id", "mrn",
        ],
        "medium": [
            "address", "birth_date", "dob", "full_name", "first_name", "last_name", "payment", "billing",
        ],
    }

    # order matters: a 13+ digit string is a card before it is a phone
    VALUE_VALIDATORS = {
        "email": r"^[^\s@]+@[^\s@]+\.[^\s@]+$",
        "credit_card": r"^[0-9]{13,19}$",
        "ssn": r"^\d{3}-?\d{2}-?\d{4}$",
        "phone": r"^[+]?[(]?[0-9]{3}[)]?[-\s.]?[0-9]{3}[-\s.]?[0-9]{4,6}$",
    }

    CONTENT_SAMPLE_ROWS = 3
    MAX_OBFUSCATED_SAMPLES = 2
