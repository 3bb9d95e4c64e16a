"""
Canva Connect integration package.

    from tripmatrix.services.canva import begin_authorization, DesignGenerator

    url = begin_authorization(session=session, user_id=user.id)
    ...
    result = await DesignGenerator().generate_design(
        session=session, user_id=user.id, trip=trip, places=places
    )

Configuration (environment variables):
    CANVA_CLIENT_ID / CANVA_CLIENT_SECRET: OAuth client credentials
    CANVA_REDIRECT_URI: Callback URL (derived from the request when unset)
    CANVA_BRAND_TEMPLATE_ID: Autofill template (blank designs when unset)
"""

from .assets import upload_asset, upload_assets
from .client import CanvaClient
from .designs import (
    AutofillJob,
    DesignGenerator,
    JobState,
    generate_diary_design,
    parse_design_result,
)
from .oauth import (
    CANVA_SCOPES,
    CanvaOAuthConfig,
    begin_authorization,
    build_authorization_url,
    generate_oauth_state,
    generate_pkce_pair,
    get_canva_config,
    verify_pkce_pair,
)
from .templates import (
    FIELD_STRATEGIES,
    build_autofill_payload,
    collect_image_urls,
    fetch_template_schema,
)
from .tokens import (
    RefreshLockTable,
    complete_authorization,
    disconnect,
    exchange_code_for_tokens,
    get_connection_status,
    get_valid_access_token,
    refresh_access_token,
)

__all__ = [
    # Client
    "CanvaClient",
    # Authorization
    "CANVA_SCOPES",
    "CanvaOAuthConfig",
    "begin_authorization",
    "build_authorization_url",
    "generate_oauth_state",
    "generate_pkce_pair",
    "get_canva_config",
    "verify_pkce_pair",
    # Tokens
    "RefreshLockTable",
    "complete_authorization",
    "disconnect",
    "exchange_code_for_tokens",
    "get_connection_status",
    "get_valid_access_token",
    "refresh_access_token",
    # Assets
    "upload_asset",
    "upload_assets",
    # Templates
    "FIELD_STRATEGIES",
    "build_autofill_payload",
    "collect_image_urls",
    "fetch_template_schema",
    # Designs
    "AutofillJob",
    "DesignGenerator",
    "JobState",
    "generate_diary_design",
    "parse_design_result",
]
