# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

# Auth
INVALID_CREDENTIALS_VIOLATION_TYPE = "InvalidCredentialsViolation"
NOT_AUTHENTICATED_VIOLATION_TYPE = "NotAuthenticatedViolation"
MISSING_PERMISSIONS_VIOLATION_TYPE = "MissingPermissionViolation"
ADMIN_CREDENTIALS_VIOLATION_TYPE = "AdminCredentialsViolation"
TERMS_NOT_SUPPORTED_VIOLATION_TYPE = "TermsNotSupportedViolation"

# Entities
UNEXISTING_ENTITY_VIOLATION_TYPE = "UnexistingEntityViolation"
UNEXISTING_BLOB_VIOLATION_TYPE = "UnexistingBlobViolation"

# Generic
UNEXISTING_RESOURCE_VIOLATION_TYPE = "UnexistingResourceViolation"
INVALID_ARGUMENT_VIOLATION_TYPE = "InvalidArgumentViolation"
METHOD_NOT_ALLOWED_VIOLATION_TYPE = "MethodNotAllowedViolation"
TOO_MANY_SESSIONS_VIOLATION_TYPE = "TooManySessionsViolation"
SERVICE_NOT_CONFIGURED_VIOLATION_TYPE = "ServiceNotConfiguredViolation"
