"""Interface for credential providers.

Supplies the API key and the production/sandbox selection at send time.
"""

import abc
from typing import Optional

from ..models.common import ApiKey, BaseUrlMode


class CredentialProvider(abc.ABC):
    """Abstract Base Class for retrieving the session's credentials."""

    @abc.abstractmethod
    def get_api_key(self) -> Optional[ApiKey]:
        """Returns the API key, or None if none is configured."""
        pass

    @abc.abstractmethod
    def get_base_url_mode(self) -> BaseUrlMode:
        """Returns which host (production or sandbox) requests should go to."""
        pass
