from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional, List


class Settings(BaseSettings):
    # Backend location - same origin in production, fixed local port in development
    environment: str = "development"
    api_url: Optional[str] = None
    dev_api_url: str = "http://localhost:5001/api"
    prod_api_url: str = "/api"
    public_origin: str = "http://localhost"

    # HTTP client
    request_timeout: float = 10.0
    max_retries: int = 3
    retry_backoff_seconds: float = 1.0
    retry_status_codes: List[int] = [408, 429]

    # Session
    token_file: str = ".rentdesk/storage.json"
    token_key: str = "token"
    login_route: str = "/login"
    session_expired_redirect_delay: float = 2.0
    save_redirect_delay: float = 1.5

    # Company identity printed on every document
    company_name: str = "Půjčovna Stavebnin s.r.o."
    company_street: str = "Stavební 123"
    company_city: str = "123 45 Město"
    company_ico: str = "12345678"
    company_dic: str = "CZ12345678"
    company_phone: str = "+420 123 456 789"
    company_email: str = "info@pujcovna-stavebnin.cz"
    company_web: str = "www.pujcovna-stavebnin.cz"

    # Documents
    currency_code: str = "CZK"
    pdf_font_path: Optional[str] = None
    pdf_output_dir: str = "downloads"
    billing_due_days: int = 14

    # Forms
    material_value_ratio: float = 0.85

    log_level: str = "INFO"

    @field_validator('environment', mode='before')
    @classmethod
    def parse_environment(cls, v):
        if v is None or v == '':
            return "development"
        return str(v).lower()

    @field_validator('api_url', 'pdf_font_path', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        if v == '':
            return None
        return v

    @field_validator('retry_status_codes', mode='before')
    @classmethod
    def parse_status_codes(cls, v):
        if v is None or v == '':
            return []
        if isinstance(v, str):
            return [int(code) for code in v.split(',') if code.strip()]
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def base_url(self) -> str:
        """Resolve the backend API origin for the current environment"""
        if self.api_url:
            return self.api_url.rstrip('/')
        if self.is_production:
            if self.prod_api_url.startswith('/'):
                return f"{self.public_origin.rstrip('/')}{self.prod_api_url}"
            return self.prod_api_url.rstrip('/')
        return self.dev_api_url.rstrip('/')

    @property
    def company_lines(self) -> List[str]:
        return [
            self.company_street,
            self.company_city,
            f"IČO: {self.company_ico}, DIČ: {self.company_dic}",
            f"Tel: {self.company_phone}",
            f"Email: {self.company_email}",
        ]

    @property
    def company_footer(self) -> str:
        return (
            f"{self.company_name} | {self.company_street}, {self.company_city} | "
            f"IČO: {self.company_ico} | DIČ: {self.company_dic}"
        )

    class Config:
        env_file = ".env"
        env_prefix = "RENTDESK_"


settings = Settings()
