"""Service layer exports.

Expose the pipeline services for easy importing.
"""

from .openai_client import EmbeddingBatch, OpenAIService, get_openai_service
from .embedding_cache import EmbeddingCache, get_embedding_cache
from .registry import FIXED_DOMAINS, DomainRegistry, RegisteredDomain, get_domain_registry
from .captures import CaptureService, CaptureStore, get_capture_service
from .clustering import PatternCluster, PatternDetector, greedy_cluster
from .synthesizer import SchemaSynthesizer, parse_schema_response
from .proposals import ProposalStore
from .deployer import SchemaDeployer, audit_dynamic_tables
from .records import DynamicRecordService
from .extraction import Extractor, LLMExtractor, get_extractor
from .reprocessing import ReprocessingService
from .evolution import EvolutionService

__all__ = [
    "EmbeddingBatch",
    "OpenAIService",
    "get_openai_service",
    "EmbeddingCache",
    "get_embedding_cache",
    "FIXED_DOMAINS",
    "DomainRegistry",
    "RegisteredDomain",
    "get_domain_registry",
    "CaptureService",
    "CaptureStore",
    "get_capture_service",
    "PatternCluster",
    "PatternDetector",
    "greedy_cluster",
    "SchemaSynthesizer",
    "parse_schema_response",
    "ProposalStore",
    "SchemaDeployer",
    "audit_dynamic_tables",
    "DynamicRecordService",
    "Extractor",
    "LLMExtractor",
    "get_extractor",
    "ReprocessingService",
    "EvolutionService",
]
