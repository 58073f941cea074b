"""
Domain models for a physiognomy scan.

These models represent what a scan produces: the model's reading of a face
and where the original photo was stored. They have no dependencies on
FastAPI, boto3 or the Anthropic SDK.
"""

from dataclasses import dataclass
from typing import Any


def _require_text(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} must be a non-empty string")
    return value


def _require_int(value: Any, name: str) -> int:
    # bool is an int subclass, but true/false is never a valid age or score
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{name} must be a whole number")
    return int(value)


@dataclass(frozen=True)
class Fortune:
    """
    The four "palaces" of the reading.

    Field names follow the classical physiognomy vocabulary:
    - thien_dinh: forehead (intellect)
    - tai_bach: nose (wealth)
    - phu_the: eyes and mouth (marriage, family)
    - tong_quan: overall destiny
    """
    thien_dinh: str
    tai_bach: str
    phu_the: str
    tong_quan: str

    def __post_init__(self) -> None:
        for name in ("thien_dinh", "tai_bach", "phu_the", "tong_quan"):
            _require_text(getattr(self, name), name)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Fortune":
        if not isinstance(data, dict):
            raise ValueError("fortune must be an object")
        try:
            return cls(
                thien_dinh=data["thienDinh"],
                tai_bach=data["taiBach"],
                phu_the=data["phuThe"],
                tong_quan=data["tongQuan"],
            )
        except KeyError as e:
            raise ValueError(f"fortune is missing field {e.args[0]}") from e

    def to_dict(self) -> dict[str, str]:
        return {
            "thienDinh": self.thien_dinh,
            "taiBach": self.tai_bach,
            "phuThe": self.phu_the,
            "tongQuan": self.tong_quan,
        }


@dataclass(frozen=True)
class BiometricAnalysis:
    """
    The structured reading returned by the vision model.

    Frozen because a reading is a value: once the model has spoken,
    nothing in the service rewrites it.
    """
    estimated_age: int
    beauty_score: int
    life_quote: str
    archetype: str
    fortune: Fortune

    def __post_init__(self) -> None:
        age = _require_int(self.estimated_age, "estimated_age")
        score = _require_int(self.beauty_score, "beauty_score")
        if age < 0:
            raise ValueError("estimated_age cannot be negative")
        if not 0 <= score <= 100:
            raise ValueError("beauty_score must be between 0 and 100")
        _require_text(self.life_quote, "life_quote")
        _require_text(self.archetype, "archetype")
        # normalize 42.0 -> 42 on a frozen instance
        object.__setattr__(self, "estimated_age", age)
        object.__setattr__(self, "beauty_score", score)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BiometricAnalysis":
        """
        Build an analysis from the model's camelCase JSON payload.

        Raises ValueError if a field is missing or has the wrong shape.
        """
        if not isinstance(data, dict):
            raise ValueError("analysis must be a JSON object")
        try:
            return cls(
                estimated_age=data["estimatedAge"],
                beauty_score=data["beautyScore"],
                life_quote=data["lifeQuote"],
                archetype=data["archetype"],
                fortune=Fortune.from_dict(data["fortune"]),
            )
        except KeyError as e:
            raise ValueError(f"analysis is missing field {e.args[0]}") from e

    def to_dict(self) -> dict[str, Any]:
        return {
            "estimatedAge": self.estimated_age,
            "beautyScore": self.beauty_score,
            "lifeQuote": self.life_quote,
            "archetype": self.archetype,
            "fortune": self.fortune.to_dict(),
        }


@dataclass(frozen=True)
class UploadOutcome:
    """Where a photo ended up: the object key and the region that accepted it."""
    object_key: str
    region: str


@dataclass(frozen=True)
class ScanResult:
    """Everything the client gets back from one scan."""
    analysis: BiometricAnalysis
    record_id: str
    url: str
