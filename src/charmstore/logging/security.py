#  Copyright 2025 Canonical Ltd.  This software is licensed under the
#  GNU Affero General Public License version 3 (see the file LICENSE).

# Security Log Type
SECURITY = "security"

# Authentication
AUTHN_AUTH_FAILED = "AUTHN_authentication_failed"
AUTHN_AUTH_SUCCESSFUL = "AUTHN_authentication_successful"
AUTHN_DISCHARGE_REQUIRED = "AUTHN_discharge_required"

# Authorization
AUTHZ_FAIL = "AUTHZ_fail"
AUTHZ_ADMIN = "AUTHZ_administrative"

# Entities
PERMISSIONS_UPDATED = "ENTITY_permissions_updated"
PROMULGATION_UPDATED = "ENTITY_promulgation_updated"
PUBLISHED = "ENTITY_published"
