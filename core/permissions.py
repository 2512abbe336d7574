# ============================================
# CENTRALIZED ROLE → PERMISSIONS MAP
# ============================================
ROLE_PERMISSIONS = {

    # =====================================================
    # PLATFORM ADMIN (back-office accounts use admin sessions,
    # this role covers profiles flagged as admin)
    # =====================================================
    "admin": [
        "*",
    ],

    # =====================================================
    # SYNDIC: manages one residence
    # =====================================================
    "syndic": [
        "residences:read", "residences:write",
        "residents:read", "residents:write",
        "registrations:read", "registrations:review",
        "fees:read", "fees:write",
        "payments:read", "payments:write", "payments:verify",
        "expenses:read", "expenses:write",
        "contributions:read", "contributions:write",
        "financial:read", "financial:close",
        "incidents:read", "incidents:write", "incidents:manage",
        "billing:manage",
        "documents:submit",
    ],

    # =====================================================
    # GUARD: front desk
    # =====================================================
    "guard": [
        "residences:read",
        "residents:read",
        "incidents:read", "incidents:write",
    ],

    # =====================================================
    # RESIDENT
    # =====================================================
    "resident": [
        "residences:read",
        "fees:read",
        "payments:read", "payments:submit",
        "contributions:read",
        "incidents:read", "incidents:write",
    ],
}

VALID_ROLES = list(ROLE_PERMISSIONS.keys())
