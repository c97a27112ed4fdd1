import os
from dotenv import load_dotenv

load_dotenv()

# Supabase
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
# Sign-in/refresh run on a publishable key client; falls back to the service key
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "") or SUPABASE_SERVICE_ROLE_KEY

# Server
API_PORT = int(os.getenv("API_PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "info")
APP_URL = os.getenv("APP_URL", "http://localhost:3000")

# CORS - supports multiple origins comma-separated
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")

# Application tokens (wrap the provider session, bind it to one tenant)
JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "30"))

# Tenant selection when a login omits tenantId and the email has several
# memberships: "oldest" (first-created membership) or "explicit" (reject)
DEFAULT_TENANT_POLICY = os.getenv("DEFAULT_TENANT_POLICY", "oldest")

# Identity provider
PROVIDER_MAX_RETRIES = int(os.getenv("PROVIDER_MAX_RETRIES", "2"))
PROVIDER_RETRY_BACKOFF_MS = int(os.getenv("PROVIDER_RETRY_BACKOFF_MS", "200"))

# Tenant directory
DIRECTORY_PAGE_SIZE = int(os.getenv("DIRECTORY_PAGE_SIZE", "50"))
