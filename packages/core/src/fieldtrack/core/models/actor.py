"""Actor -- verified identity handed over by the caller"""

from pydantic import BaseModel, ConfigDict, Field

from .enums import ActorRole


class Actor(BaseModel):
    """Authenticated actor; identity verification happens upstream"""

    model_config = ConfigDict(frozen=True)

    actor_id: str = Field(min_length=1)
    role: ActorRole = Field(default=ActorRole.WORKER)

    @property
    def is_elevated(self) -> bool:
        return self.role in (ActorRole.ADMIN, ActorRole.SYSTEM)
