"""
Bucket region resolution for S3.

The bucket's region isn't part of our configuration unless someone pins
it. When it isn't pinned we ask S3 with GetBucketLocation, which works
from any region, so the lookup itself is sent to the baseline region.

The resolved region and the client bound to it live together in a
StorageContext. They are always cleared together and set together, so
a write never goes out on a client bound to a stale region.
"""

import logging
from typing import Any, Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

BASELINE_REGION = "us-east-1"

# GetBucketLocation still reports some old buckets with legacy names
LEGACY_REGION_ALIASES = {
    "EU": "eu-west-1",
}

# region -> boto3 S3 client bound to that region
ClientFactory = Callable[[str], Any]


class DiscoveryError(Exception):
    """Raised internally when the bucket location lookup fails."""
    pass


def normalize_region(value: Optional[str]) -> str:
    """
    Map a LocationConstraint value to a region name.

    S3 reports us-east-1 buckets with a null constraint, and a few
    legacy aliases for older buckets.
    """
    if not value:
        return BASELINE_REGION
    return LEGACY_REGION_ALIASES.get(value, value)


class RegionResolver:
    """
    Determines and caches the region of one bucket.

    The cache is process-wide through the single StorageContext that owns
    this resolver. Concurrent requests may race on invalidation and both
    run discovery; that only costs an extra lookup.
    """

    def __init__(
        self,
        bucket_name: str,
        client_factory: ClientFactory,
        fixed_region: Optional[str] = None,
    ) -> None:
        self._bucket_name = bucket_name
        self._client_factory = client_factory
        self._fixed_region = (fixed_region or "").strip() or None
        self._region: Optional[str] = None

    @property
    def cached_region(self) -> Optional[str]:
        return self._region

    def resolve(self) -> str:
        """Return the cached region, resolving it first if needed."""
        if self._region:
            return self._region

        if self._fixed_region:
            self._region = normalize_region(self._fixed_region)
            logger.debug(
                "Using configured bucket region",
                extra={"bucket": self._bucket_name, "region": self._region}
            )
            return self._region

        self._region = self._discover()
        return self._region

    def invalidate(self) -> None:
        """Forget the cached region; the next resolve() starts over."""
        self._region = None

    def rediscover(self) -> str:
        """
        Look the bucket up again and cache the answer.

        Used after a region mismatch, so it skips a configured region:
        that region has just been proven wrong.
        """
        self.invalidate()
        self._region = self._discover()
        return self._region

    def _discover(self) -> str:
        """Run discovery, falling back to the baseline region on failure."""
        try:
            region = normalize_region(self._lookup_location())
        except DiscoveryError as e:
            logger.warning(
                "Failed to discover bucket region, defaulting to baseline",
                extra={
                    "bucket": self._bucket_name,
                    "region": BASELINE_REGION,
                    "error": str(e),
                }
            )
            return BASELINE_REGION

        logger.info(
            "Discovered bucket region",
            extra={"bucket": self._bucket_name, "region": region}
        )
        return region

    def _lookup_location(self) -> Optional[str]:
        try:
            client = self._client_factory(BASELINE_REGION)
            response = client.get_bucket_location(Bucket=self._bucket_name)
        except (ClientError, BotoCoreError) as e:
            raise DiscoveryError(f"GetBucketLocation failed: {e}") from e

        if not isinstance(response, dict):
            raise DiscoveryError("GetBucketLocation returned a malformed response")

        location = response.get("LocationConstraint")
        if location is not None and not isinstance(location, str):
            raise DiscoveryError(f"Unexpected LocationConstraint: {location!r}")

        return location


class StorageContext:
    """
    The resolved region and the S3 client bound to it, owned as a pair.

    The client is created lazily on first use and recreated whenever the
    resolver's region no longer matches the region it was built for.
    """

    def __init__(
        self,
        resolver: RegionResolver,
        client_factory: ClientFactory,
    ) -> None:
        self._resolver = resolver
        self._client_factory = client_factory
        self._client: Any = None
        self._client_region: Optional[str] = None

    @property
    def resolver(self) -> RegionResolver:
        return self._resolver

    @property
    def region(self) -> Optional[str]:
        return self._resolver.cached_region

    def acquire(self) -> tuple[Any, str]:
        """Return (client, region), building the client if needed."""
        region = self._resolver.resolve()

        if self._client is None or self._client_region != region:
            self._client = self._client_factory(region)
            self._client_region = region
            logger.info("Created S3 client", extra={"region": region})

        return self._client, region

    def rediscover(self) -> str:
        """Drop the client and look the region up again."""
        self._discard_client()
        return self._resolver.rediscover()

    def _discard_client(self) -> None:
        self._client = None
        self._client_region = None
