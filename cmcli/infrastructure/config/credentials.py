"""CredentialProvider implementations."""

from typing import Optional

from cmcli.domain.interfaces.credentials import CredentialProvider
from cmcli.domain.models.common import ApiKey, BaseUrlMode
from cmcli.infrastructure.config import settings


class StaticCredentials(CredentialProvider):
    """Credentials fixed at construction time."""

    def __init__(self, api_key: Optional[str], mode: BaseUrlMode = BaseUrlMode.PRODUCTION):
        self._api_key = ApiKey(api_key) if api_key else None
        self._mode = mode

    def get_api_key(self) -> Optional[ApiKey]:
        return self._api_key

    def get_base_url_mode(self) -> BaseUrlMode:
        return self._mode


class ConfiguredCredentials(CredentialProvider):
    """Reads the key and sandbox flag from settings on every call.

    An explicit `sandbox` argument overrides the configured flag.
    """

    def __init__(self, sandbox: Optional[bool] = None):
        self._sandbox = sandbox

    def get_api_key(self) -> Optional[ApiKey]:
        return settings.get_api_key()

    def get_base_url_mode(self) -> BaseUrlMode:
        sandbox = settings.use_sandbox() if self._sandbox is None else self._sandbox
        return BaseUrlMode.SANDBOX if sandbox else BaseUrlMode.PRODUCTION
