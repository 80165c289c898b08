"""Configuration management for the Page Search retrieval engine."""
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# External vector backend (Supabase pgvector)
USE_VECTOR_SEARCH = os.getenv("USE_VECTOR_SEARCH", "false").lower() == "true"
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")
VECTOR_TABLE = os.getenv("VECTOR_TABLE", "document_chunks")
VECTOR_TIMEOUT = float(os.getenv("VECTOR_TIMEOUT", "10"))  # seconds

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Embedding Configuration
EMBEDDING_DIM = 128  # must match the vector column of the external table

# Chunking Configuration
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "500"))  # tokens

# Retrieval Configuration
DEFAULT_SEARCH_LIMIT = 10
RELEVANCE_FLOOR = 15  # percent of the best score for the query
BM25_K1 = 1.5  # term frequency saturation
BM25_B = 0.75  # length normalization
BM25_DELTA = 1.0  # BM25+ lower bound on a matching term's contribution
PHRASE_BOOST = 1.5
POSITION_WEIGHT = 0.3

# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
