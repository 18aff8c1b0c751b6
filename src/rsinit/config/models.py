# src/rsinit/config/models.py

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator

from ..bootstrap.supervisor import key_file_arg


class BootstrapConfig(BaseModel):
    """Immutable input of one bootstrap run."""

    model_config = ConfigDict(frozen=True)

    # Root credentials (provisioned under the localhost exception)
    username: str
    password: SecretStr
    root_role: str = "root"
    root_role_db: str = "admin"

    # Replica set
    self_address: str = "localhost:27017"
    replica_set_name: str = "rs0"

    # Server process
    argv: List[str] = Field(default_factory=list)   # full mongod command line
    key_file_flags: List[str] = Field(default_factory=lambda: ["--keyFile"])
    auth_flags: List[str] = Field(default_factory=lambda: ["--auth"])

    # Polling bounds
    max_attempts: int = Field(default=60, ge=1)
    interval_seconds: float = Field(default=1.0, ge=0)

    # Admin client
    admin_uri: Optional[str] = None                  # derived from self_address when unset
    server_selection_timeout_ms: int = Field(default=2000, ge=1)
    connect_timeout_ms: int = Field(default=2000, ge=1)

    # Shared key file
    keyfile_path: str = "/data/mongo-keyfile"       # used when argv names no key file
    keyfile_owner: Optional[str] = "mongodb"         # None skips chown
    keyfile_group: Optional[str] = "mongodb"
    keyfile_bytes: int = Field(default=756, ge=512, le=768)

    @field_validator("username")
    @classmethod
    def _username_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("root username must not be empty")
        return v

    @field_validator("password")
    @classmethod
    def _password_not_empty(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value():
            raise ValueError("root password must not be empty")
        return v

    @property
    def resolved_admin_uri(self) -> str:
        return self.admin_uri or f"mongodb://{self.self_address}/"

    @property
    def auth_flag(self) -> str:
        """Flag appended for the secured restart."""
        return self.auth_flags[0] if self.auth_flags else "--auth"

    @model_validator(mode="after")
    def _keyfile_matches_argv(self) -> "BootstrapConfig":
        named = key_file_arg(self.argv, self.key_file_flags)
        if named and "keyfile_path" in self.model_fields_set and named != self.keyfile_path:
            raise ValueError(
                f"keyfile_path {self.keyfile_path!r} differs from the server's key file {named!r}"
            )
        return self

    @property
    def effective_keyfile_path(self) -> str:
        """Key file the secured server will read: the argv value wins over keyfile_path."""
        return key_file_arg(self.argv, self.key_file_flags) or self.keyfile_path
