import os
from dotenv import load_dotenv

load_dotenv()

user = os.getenv("DB_USER")
password = os.getenv("DB_PASSWORD")
host = os.getenv("DB_HOST", "localhost")
port = os.getenv("DB_PORT", "5432")
db_name = os.getenv("DB_NAME")
database_url = os.getenv("DATABASE_URL")
sqlite_path = os.getenv("SQLITE_PATH", "games.sqlite3")
pepper_data = os.getenv("PEPPER_DATA", "")

redis_host = os.getenv("REDIS_HOST", "redis")
redis_port = int(os.getenv("REDIS_PORT", "6379"))

# "memory" keeps the cache in-process, "redis" shares it between workers
cache_backend = os.getenv("CACHE_BACKEND", "memory")
cache_ttl = float(os.getenv("CACHE_TTL", "300"))
cache_cleanup_minutes = int(os.getenv("CACHE_CLEANUP_MINUTES", "10"))

default_page_limit = int(os.getenv("DEFAULT_PAGE_LIMIT", "20"))
log_level = os.getenv("LOG_LEVEL", "INFO")

if __name__ == "__main__":
    print(user, host, port, db_name, database_url, cache_backend, cache_ttl)
