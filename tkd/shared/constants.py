SUPER_ADMIN = "super_admin"
STATE_ADMIN = "state_admin"
DISTRICT_ADMIN = "district_admin"

ROLES = (SUPER_ADMIN, STATE_ADMIN, DISTRICT_ADMIN)

# Older accounts were created with camelCase role names.
ROLE_ALIASES = {
    "superAdmin": SUPER_ADMIN,
    "stateAdmin": STATE_ADMIN,
    "districtAdmin": DISTRICT_ADMIN,
}

ROLE_LABELS = {
    SUPER_ADMIN: "Super Admin",
    STATE_ADMIN: "State Admin",
    DISTRICT_ADMIN: "District Admin",
}

CADET = "cadet"
POOMSAE = "poomsae"
CERTIFICATE = "certificate"

ENTRY_KINDS = (CADET, POOMSAE, CERTIFICATE)

# URL segment -> entry kind
KIND_SEGMENTS = {
    "cadets": CADET,
    "poomsae": POOMSAE,
    "certificates": CERTIFICATE,
}

CADET_GENDERS = ("male", "female", "other")
CADET_STATUSES = ("pending", "approved", "rejected")

POOMSAE_DIVISIONS = (
    "Under 30",
    "Under 40",
    "Under 50",
    "Under 60",
    "Under 65",
    "Over 65",
    "Over 30",
)
POOMSAE_CATEGORIES = ("Individual", "Pair", "Group")
POOMSAE_GENDERS = ("Male", "Female")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
RECENT_DAYS = 7
