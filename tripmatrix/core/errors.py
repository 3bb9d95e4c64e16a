"""
Error taxonomy for the Canva design integration.

Every failure that crosses a component boundary is one of these kinds.
Each carries a stable machine-readable `code` (used in callback redirects
and API error bodies) and a short human-readable `message`.
"""


class DesignIntegrationError(Exception):
    """Base class for all Canva integration failures."""

    code = "design_integration_error"
    default_message = "The Canva integration failed."
    http_status = 500

    def __init__(self, message: str | None = None, *, code: str | None = None):
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def to_detail(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class ConfigurationMissing(DesignIntegrationError):
    """Client credentials (or another required setting) are not configured."""

    code = "configuration_missing"
    default_message = "Canva integration is not configured on this server."
    http_status = 503


class StateInvalidOrExpired(DesignIntegrationError):
    """
    The OAuth state is unknown, already consumed, expired, or unusable.

    Codes: invalid_state, state_expired, missing_code_verifier.
    """

    code = "invalid_state"
    default_message = "This Canva authorization link is no longer valid. Please connect again."
    http_status = 400


class NotConnected(DesignIntegrationError):
    """The user has no stored Canva token."""

    code = "not_connected"
    default_message = "Connect your Canva account to generate a design."
    http_status = 401


class ReauthorizationRequired(DesignIntegrationError):
    """The stored token could not be refreshed and has been discarded."""

    code = "reauthorization_required"
    default_message = "Your Canva session has expired. Please reconnect your Canva account."
    http_status = 401


class NoContentAvailable(DesignIntegrationError):
    """The trip has no places to put in a design."""

    code = "no_content"
    default_message = "Add at least one place to this trip before generating a design."
    http_status = 400


class TemplateMismatch(DesignIntegrationError):
    """The brand template has fields this service does not know how to fill."""

    code = "template_mismatch"
    default_message = "The configured Canva template has fields that cannot be filled."
    http_status = 503

    def __init__(self, fields: list[str]):
        self.fields = fields
        super().__init__(
            f"The configured Canva template has unrecognized fields: {', '.join(fields)}"
        )


class MalformedJobResult(DesignIntegrationError):
    """A finished autofill job returned a design URL we cannot parse."""

    code = "malformed_job_result"
    default_message = "Canva returned a design we could not read."
    http_status = 502


class JobFailed(DesignIntegrationError):
    """The autofill job reported failure."""

    code = "job_failed"
    http_status = 502

    def __init__(self, status: str, detail: str | None = None):
        self.status = status
        self.detail = detail
        message = f"Canva could not generate the design (status: {status})."
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)


class JobTimedOut(DesignIntegrationError):
    """Polling gave up before the autofill job finished."""

    code = "job_timed_out"
    default_message = (
        "Canva is taking longer than expected. The design may still appear "
        "in your Canva account shortly."
    )
    http_status = 504

    def __init__(self, job_id: str, message: str | None = None):
        self.job_id = job_id
        super().__init__(message)


class JobCancelled(DesignIntegrationError):
    """The caller stopped waiting for the autofill job."""

    code = "job_cancelled"
    default_message = "Design generation was cancelled."
    http_status = 499

    def __init__(self, job_id: str | None = None):
        self.job_id = job_id
        super().__init__()


class PartialAssetUploadFailure(DesignIntegrationError):
    """Some images could not be uploaded. Non-fatal: logged, never raised to callers."""

    code = "partial_asset_upload"

    def __init__(self, failed_urls: list[str], total: int):
        self.failed_urls = failed_urls
        self.total = total
        super().__init__(
            f"{len(failed_urls)} of {total} images could not be uploaded to Canva"
        )


class StorageError(DesignIntegrationError):
    """The token or state store failed."""

    code = "storage_error"
    default_message = "Could not save Canva connection data. Please try again."
    http_status = 500


class NetworkError(DesignIntegrationError):
    """A call to Canva (or an image host) failed or returned an error status."""

    code = "network_error"
    default_message = "Could not reach Canva. Please try again."
    http_status = 502

    def __init__(self, message: str | None = None, *, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class OAuthTokenError(NetworkError):
    """Canva's token endpoint rejected an exchange or refresh."""

    def __init__(
        self,
        error: str,
        description: str | None = None,
        *,
        status_code: int | None = None,
    ):
        self.error = error
        self.description = description
        super().__init__(
            f"{error}: {description}" if description else error,
            status_code=status_code,
        )
        self.code = error
