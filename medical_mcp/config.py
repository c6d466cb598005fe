from typing import Optional, Tuple

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration with environment variable support"""

    # App
    app_name: str = "Medical MCP"
    app_version: str = "1.0.0"
    log_level: str = "INFO"

    # HTTP app
    http_host: str = "127.0.0.1"
    http_port: int = 8000

    # Source endpoints
    fda_api_base: str = "https://api.fda.gov"
    who_api_base: str = "https://ghoapi.azureedge.net/api"
    rxnav_api_base: str = "https://rxnav.nlm.nih.gov/REST"
    pubmed_api_base: str = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"
    scholar_url: str = "https://scholar.google.com/scholar"
    clinical_trials_api_base: str = "https://clinicaltrials.gov/api/v2"

    # Identification sent with every API request
    user_agent: str = "medical-mcp/1.0"
    # Scholar rejects obvious bot agents, so it gets a browser-like one
    scholar_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    # Optional credentials (raise NCBI / openFDA rate limits)
    ncbi_api_key: str = ""
    ncbi_email: str = ""
    fda_api_key: str = ""

    # HTTP
    http_timeout: float = 30.0

    # Results requested per search term
    pubmed_results_per_term: int = 5
    scholar_max_results: int = 10
    trials_max_results: int = 10

    # Randomized delay (seconds) before each Scholar request
    scholar_delay_range: Tuple[float, float] = (1.0, 3.0)

    # Upper bound for one aggregation call (seconds); 0 disables it
    aggregation_deadline_seconds: float = 60.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "MEDICAL_MCP_"

    @property
    def aggregation_deadline(self) -> Optional[float]:
        return self.aggregation_deadline_seconds or None


settings = Settings()
