"""
Configuration settings for FlowEngine.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""
    
    # Application
    APP_NAME: str = "FlowEngine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    
    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    
    # Orchestration
    MAX_FLOW_STEPS: int = 100  # Node visits per traversal before aborting
    MAX_MODEL_ITERATIONS: int = 30  # Model/tool round trips per process node
    ENABLE_EXECUTION_TRACKER: bool = True
    
    # Tool binding nodes
    TOOL_RESOLUTION_RETRIES: int = 3
    TOOL_RESOLUTION_RETRY_INTERVAL_MS: int = 500
    
    # Demo flow registered at startup
    DEMO_FLOW_NAME: str = "echo-demo"
    
    # Logging
    LOG_LEVEL: str = "INFO"
    
    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
