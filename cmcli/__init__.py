"""cmcli: a rate-limited CoinMarketCap API client."""

__version__ = "0.1.0"
