"""Fixed corpus of Elevidys regulatory, clinical, press and SEC documents.

The corpus is a static list of PDF filenames. Category, id, title and public
link are all derived from the filename, so the list is the single source of
truth for what the service can cite.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from urllib.parse import quote

from sarepta_qa.config import Settings
from sarepta_qa.models.document import Document, DocumentCategory

logger = logging.getLogger(__name__)

CORPUS_FILES: tuple[str, ...] = (
    # Abstracts
    "Abstract - Expanded Indication for Elevidys.pdf",
    "Abstract - How Safe is Gene Therapy?.pdf",
    # FDA
    "FDA - Analytical Method Review Memo - ELEVIDYS.pdf",
    "FDA - Bioresearch Monitoring Final Review Memo - ELEVIDYS.pdf",
    "FDA - CBER CMC BLA Review Memo - ELEVIDYS.pdf",
    "FDA - CBER-DMPQ CMC-Facility BLA Review Memo - ELEVIDYS.pdf",
    "FDA - Clinical Pharmacology BLA Review - ELEVIDYS.pdf",
    "FDA - Clinical Review Memo - ELEVIDYS.pdf",
    "FDA - Drug Label - ELEVIDYS.pdf",
    "FDA - Informal Teleconference Summary, May 22, 2023 - ELEVIDYS.pdf",
    "FDA - Internal Meeting Summary, May 15, 2023 - ELEVIDYS.pdf",
    "FDA - Internal Meeting Summary, May 16, 2023 - ELEVIDYS.pdf",
    "FDA - Internal Meeting Summary, May 18, 2023 - ELEVIDYS.pdf",
    "FDA - Internal Meeting Summary, May 19, 2023 - ELEVIDYS.pdf",
    "FDA - IVD Companion Diagnostic Device Memo - ELEVIDYS.pdf",
    "FDA - June-22-2023-Approval-Letter-ELEVIDYS.pdf",
    "FDA - Labeling Review - ELEVIDYS.pdf",
    "FDA - Late-Cycle Meeting Summary - ELEVIDYS.pdf",
    "FDA - Memorandum - ELEVIDYS.pdf",
    "FDA - Mid-Cycle Communication Summary - ELEVIDYS.pdf",
    "FDA - Officer and Employee List - ELEVIDYS.pdf",
    "FDA - Package-Insert-ZOLGENSMA_1.pdf",
    "FDA - Pharmacology-Toxicology Review - ELEVIDYS.pdf",
    "FDA - Pharmacovigilance Plan Review Memo - ELEVIDYS.pdf",
    "FDA - Review of Lot Release Protocol Template - ELEVIDYS.pdf",
    "FDA - Statistical Review - ELEVIDYS.pdf",
    # Press reports
    "Press Report - Sarepta faces new scrutiny after 3rd patient death.pdf",
    "Press Report - Sarepta Refused FDA Request to Halt Elevidys Shipments.pdf",
    "Press Report - Sarepta stands behind Elevidys after FDA requests gene therapy be "
    "pulled from market _ Fierce Pharma.pdf",
    "Press Report - Sarepta, bowing to FDA pressure, pauses shipments of Duchenne gene "
    "therapy Elevidys _ Fierce Pharma.pdf",
    # Publications
    "Publication - AAV gene therapy for Duchenne muscular dystrophy.pdf",
    "Publication - Caregiver Global Impression Observations from EMBARK.pdf",
    "Publication - Delandistrogene Moxeparvovec Gene Therapy in Ambulatory Patients aged 4 to 8.pdf",
    "Publication - delandistrogene-moxeparvovec-gene-therapy-in-individuals-with-duchenne-"
    "muscular-dystrophy-evidence-in.pdf",
    "Publication - Development of capsid- and genome-modified optimized AAVrh74 vectors for "
    "muscle gene therapy.pdf",
    "Publication - Expression of SRP-9001 dystrophin and stabilization of motor function up "
    "to 2 years post-treatment.pdf",
    "Publication - Gene therapy approval for Duchenne muscular dystrophy.pdf",
    "Publication - Immunologic investigations into transgene directed immune-mediated myositis.pdf",
    "Publication - long-term-survival-and-myocardial-function-following-systemic-delivery-of-"
    "delandistrogene-moxeparvovec.pdf",
    "Publication - Long-term safety and functional outcomes of delandistrogene moxeparvovec "
    "gene therapy.pdf",
    "Publication - Management of Select Adverse Events Following Delandistrogene Moxeparvovec "
    "Gene Therapy for Patients with Duchenne Muscular Dystrophy.pdf",
    "Publication - Neuromuscular diseases.pdf",
    "Publication - Paving the way for future gene therapies.pdf",
    "Publication - Practical Considerations for Delandistrogene Moxeparvovec Gene Therapy in "
    "Patients with Duchenne Muscular Dystrophy.pdf",
    "Publication - Quantitative Muscle Magnetic Resonance Outcomes in Patients with Duchenne "
    "Muscular Dystrophy.pdf",
    "Publication - some-functional-improvements-in-placebo-and-delandistrogene-moxeparvovec-"
    "treated-trial-participants.pdf",
    "Publication - The FDA approval of delandistrogene moxeparvovec-rokl for Duchenne muscular "
    "dystrophy  a critical examination of the evidence and regulatory process.pdf",
    "Publication - Use of plasmapheresis to lower anti-AAV antibodies in nonhuman primates "
    "with pre-existing immunity to AAVrh74.pdf",
    "Publication - Validity of remote live stream video evaluation of the North Star "
    "Ambulatory Assessment in patients with Duchenne muscular dystrophy.pdf",
    # SEC
    "SEC - 8K Filing - 07.21.25 - Sarepta.pdf",
    "SEC - Sarepta 10K Annual Report - 04.25.pdf",
)

# Order matters: "Press Report" and "Publication" share a leading "P".
_CATEGORY_PREFIXES: tuple[tuple[str, DocumentCategory], ...] = (
    ("Abstract", DocumentCategory.ABSTRACT),
    ("FDA", DocumentCategory.FDA),
    ("Publication", DocumentCategory.PUBLICATION),
    ("Press Report", DocumentCategory.PRESS_REPORT),
    ("SEC", DocumentCategory.SEC),
)

CATEGORY_PREFIX_RE = re.compile(r"^(FDA|SEC|Publication|Press Report|Abstract) - ")
PDF_SUFFIX_RE = re.compile(r"\.pdf$", re.IGNORECASE)

# Known large files, in bytes
_KNOWN_SIZES: dict[str, int] = {
    "Clinical Review": 2_700_000,
    "10K Annual Report": 2_200_000,
    "AAV gene therapy": 5_500_000,
    "Immunologic investigations": 4_400_000,
}


def category_from_filename(filename: str) -> DocumentCategory:
    """Infer the category from the filename prefix (Publication if unknown)."""
    for prefix, category in _CATEGORY_PREFIXES:
        if filename.startswith(prefix):
            return category
    return DocumentCategory.PUBLICATION


def document_id_from_filename(filename: str) -> str:
    """Build a stable lower-case slug, e.g. 'fda-drug-label-elevidys'."""
    slug = PDF_SUFFIX_RE.sub("", filename.lower())
    slug = re.sub(r"[^a-z0-9]", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def title_from_filename(filename: str) -> str:
    title = CATEGORY_PREFIX_RE.sub("", filename)
    title = PDF_SUFFIX_RE.sub("", title)
    title = title.replace(" _ ", " - ")
    return title.replace("ELEVIDYS", "Elevidys")


def build_document_path(filename: str, url_prefix: str) -> str:
    """Percent-encode *filename* and join it to the public PDF prefix."""
    return f"{url_prefix.rstrip('/')}/{quote(filename, safe='')}"


def estimate_file_size(filename: str, corpus_dir: Path | None = None) -> int:
    """Return the on-disk size, or a rough estimate when the file is absent."""
    if corpus_dir is not None:
        candidate = corpus_dir / filename
        if candidate.is_file():
            return candidate.stat().st_size

    for marker, size in _KNOWN_SIZES.items():
        if marker in filename:
            return size
    return min(500_000 + len(filename) * 1000, 3_000_000)


def build_document(filename: str, settings: Settings) -> Document:
    return Document(
        id=document_id_from_filename(filename),
        title=title_from_filename(filename),
        filename=filename,
        category=category_from_filename(filename),
        path=build_document_path(filename, settings.pdf_url_prefix),
        size=estimate_file_size(filename, Path(settings.corpus_dir)),
    )


def load_all_documents(settings: Settings) -> list[Document]:
    """Build Document records for the whole fixed corpus."""
    documents = [build_document(filename, settings) for filename in CORPUS_FILES]
    logger.info("Loaded corpus of %d documents", len(documents))
    return documents


def get_documents_by_category(
    documents: list[Document],
    category: DocumentCategory,
) -> list[Document]:
    return [doc for doc in documents if doc.category == category]


def filter_documents(
    documents: list[Document],
    search: str = "",
    category: DocumentCategory | None = None,
) -> list[Document]:
    """Case-insensitive substring filter on title or filename, plus category."""
    term = search.lower()
    return [
        doc
        for doc in documents
        if (term in doc.title.lower() or term in doc.filename.lower())
        and (category is None or doc.category == category)
    ]


def get_document_stats(documents: list[Document]) -> dict[str, object]:
    """Total document count and a per-category count (every category listed)."""
    by_category: dict[str, int] = {category.value: 0 for category in DocumentCategory}
    for doc in documents:
        by_category[doc.category.value] += 1
    return {"total": len(documents), "by_category": by_category}
