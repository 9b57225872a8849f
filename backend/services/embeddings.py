"""Profile embeddings for similarity search and content-based cold start.

Uses a sentence-transformers model when settings.embedding_model names one,
otherwise a stateless hashing vectorizer so vectors are stable across
processes without a fitted vocabulary.
"""

import logging

import numpy as np
from sklearn.feature_extraction.text import HashingVectorizer

from config import settings
from models.schemas.profiles import CandidateProfile, JobProfile
from models.schemas.vectors import EmbeddingRecord

logger = logging.getLogger(__name__)

# Lazy-loaded sentence-transformers model (only when configured)
_sbert_model = None
_sbert_failed = False


def _get_sbert_model():
    """Load the configured sentence-transformers model lazily on first call."""
    global _sbert_model, _sbert_failed
    if _sbert_model is None and not _sbert_failed and settings.embedding_model:
        try:
            from sentence_transformers import SentenceTransformer

            _sbert_model = SentenceTransformer(settings.embedding_model)
            logger.info("Embedding model %s loaded", settings.embedding_model)
        except Exception as e:
            logger.warning("Failed to load embedding model %s: %s", settings.embedding_model, e)
            _sbert_failed = True
    return _sbert_model


def _hashing_vectorizer() -> HashingVectorizer:
    return HashingVectorizer(
        n_features=settings.embedding_dim,
        alternate_sign=False,
        norm="l2",
        ngram_range=(1, 2),
    )


def candidate_text(candidate: CandidateProfile) -> str:
    parts = [skill.name for skill in candidate.skills]
    parts += [f"{e.position} {e.industry}" for e in candidate.experience]
    parts += [f"{e.level} {e.field} {e.specialization}" for e in candidate.education]
    return " ".join(p.strip() for p in parts if p.strip())


def job_text(job: JobProfile) -> str:
    parts = [job.title, job.industry]
    parts += [req.name for req in job.skill_requirements]
    parts += [req.title for req in job.experience_requirements]
    parts += [f"{req.level} {req.field or ''}" for req in job.education_requirements]
    return " ".join(p.strip() for p in parts if p and p.strip())


def encode_texts(texts: list[str]) -> np.ndarray:
    """Encode texts into an (n, dim) float matrix."""
    if not texts:
        return np.zeros((0, settings.embedding_dim))
    model = _get_sbert_model()
    if model is not None:
        return np.asarray(model.encode(texts, normalize_embeddings=True), dtype=float)
    return _hashing_vectorizer().transform(texts).toarray()


def embed_candidates(candidates: list[CandidateProfile]) -> list[EmbeddingRecord]:
    vectors = encode_texts([candidate_text(c) for c in candidates])
    return [
        EmbeddingRecord(id=c.id, vector=vec.tolist(), metadata={"item_type": "candidate"})
        for c, vec in zip(candidates, vectors)
    ]


def embed_jobs(jobs: list[JobProfile]) -> list[EmbeddingRecord]:
    vectors = encode_texts([job_text(j) for j in jobs])
    return [
        EmbeddingRecord(
            id=j.id,
            vector=vec.tolist(),
            metadata={"item_type": "job", "industry": j.industry, "company": j.company},
        )
        for j, vec in zip(jobs, vectors)
    ]


def backend_name() -> str:
    """Which encoder encode_texts uses: "sentence-transformers" or "hashing"."""
    return "sentence-transformers" if _get_sbert_model() is not None else "hashing"
