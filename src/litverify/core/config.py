from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Language detection
    JAPANESE_CHAR_RATIO: float = 0.3

    # Scoring weights (relative; renormalized over the fields present)
    TITLE_WEIGHT: float = 50.0
    AUTHOR_WEIGHT: float = 15.0
    YEAR_WEIGHT: float = 20.0
    JOURNAL_WEIGHT: float = 15.0

    # Matching
    YEAR_TOLERANCE: int = 1
    AUTHOR_MATCH_FRACTION: float = 1 / 3
    SHORT_AUTHOR_LIST: int = 2

    # Ranking & status
    MIN_OVERALL_SCORE: float = 50.0
    MAX_CANDIDATES: int = 8
    FOUND_THRESHOLD: float = 90.0
    SIMILAR_THRESHOLD: float = 66.0

    # Staged search short-circuit
    GOOD_ENOUGH_RESULTS: int = 5
    BOOK_GOOD_ENOUGH_RESULTS: int = 10

    # HTTP
    REQUEST_TIMEOUT: float = 10.0
    MAX_RETRIES: int = 3
    RETRY_DELAY: float = 4.0
    DEFAULT_RETRY_AFTER: float = 5.0
    CROSSREF_MIN_INTERVAL: float = 3.0
    USER_AGENT: str = "litverify/0.1"
    CONTACT_EMAIL: str = ""

    # External APIs
    CROSSREF_BASE_URL: str = "https://api.crossref.org/works"
    SEMANTIC_SCHOLAR_BASE_URL: str = "https://api.semanticscholar.org/graph/v1"
    CINII_BASE_URL: str = "https://cir.nii.ac.jp/opensearch/all"
    NDL_BASE_URL: str = "https://ndlsearch.ndl.go.jp/api/opensearch"
    GOOGLE_BOOKS_BASE_URL: str = "https://www.googleapis.com/books/v1/volumes"
    CROSSREF_ROWS: int = 10
    SEMANTIC_SCHOLAR_LIMIT: int = 15
    CINII_COUNT: int = 20
    NDL_COUNT: int = 20
    GOOGLE_BOOKS_MAX_RESULTS: int = 20

    # Rendering
    DEFAULT_STYLE: str = "apa"

    model_config = SettingsConfigDict(env_file=".env", env_prefix="LITVERIFY_")


settings = Settings()
