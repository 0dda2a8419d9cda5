# src/shared/error_codes.py
# Central mapping for the error contract.
# Keep keys stable: API clients and schedulers branch on these.
ERROR_CODES = {
    # ─── Generic ────────────────────────────────────────────────────────────
    "validation_error": {
        "http": 422,
        "message": "Validation failed for one or more fields."
    },
    "not_found": {
        "http": 404,
        "message": "Resource not found."
    },
    "conflict": {
        "http": 409,
        "message": "Request conflicts with the current state of the resource."
    },
    "internal_error": {
        "http": 500,
        "message": "An unexpected error occurred."
    },

    # ─── Templates ─────────────────────────────────────────────────────────
    "template_validation_error": {
        "http": 422,
        "message": "Template content failed validation."
    },
    "invalid_template_status": {
        "http": 409,
        "message": "Operation not allowed in the template's current status."
    },
    "template_not_found": {
        "http": 404,
        "message": "Template not found."
    },
    "template_duplicate_name": {
        "http": 409,
        "message": "An active template with this name already exists."
    },
    "template_in_use": {
        "http": 409,
        "message": "Template cannot be removed while it is in use."
    },
    "template_version_error": {
        "http": 409,
        "message": "A newer version of this template is already in progress."
    },

    # ─── Provider & resilience ─────────────────────────────────────────────
    "provider_rejected": {
        "http": 422,
        "message": "The provider rejected the template."
    },
    "provider_error": {
        "http": 502,
        "message": "The provider returned an error."
    },
    "provider_auth_error": {
        "http": 502,
        "message": "The provider refused our credentials."
    },
    "rate_limited": {
        "http": 503,
        "message": "The provider is rate limiting requests."
    },
    "service_unavailable": {
        "http": 503,
        "message": "The provider is temporarily unavailable."
    },
    "timeout_error": {
        "http": 503,
        "message": "The provider did not answer in time."
    },
    "network_error": {
        "http": 503,
        "message": "The provider could not be reached."
    },
    "retries_exhausted": {
        "http": 503,
        "message": "The provider call failed after all retry attempts."
    },
    "circuit_open": {
        "http": 503,
        "message": "The provider is temporarily disabled after repeated failures."
    },
}
