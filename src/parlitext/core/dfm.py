# dfm.py
"""
Document-feature matrix (dfm) construction and manipulation.

Rows are documents, columns are vocabulary terms, cells are term counts
(or weights after dfm_weight). Tokenization runs through Tokenizer, which
scikit-learn's CountVectorizer uses as its analyzer so the vocabulary is
fitted once on training texts and reused on new texts.
"""
from __future__ import annotations
import regex as re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from scipy import sparse
from sklearn.feature_extraction.text import ENGLISH_STOP_WORDS, CountVectorizer

WORD_RE = re.compile(r"\w+(?:[-']\w+)*")
WORD_OR_PUNCT_RE = re.compile(r"\w+(?:[-']\w+)*|[^\w\s]")
NUMBER_RE = re.compile(r"^[+-]?\d+(?:[.,]\d+)*(?:st|nd|rd|th|s)?$")

DEFAULT_DFM_PARAMS: Dict[str, Any] = {
    "lowercase": True,
    "remove_punct": True,
    "remove_numbers": True,
    "stopwords": "english",
    "stem": False,
    "language": "english",
    "ngrams": (1, 1),
    "min_length": 1,
    "min_termfreq": None,
    "min_docfreq": 2,
    "max_docfreq": None,
    "max_features": None,
}


class Tokenizer:
    """
    Turn a text into a list of (optionally stemmed) word tokens and n-grams.

    params:
      - lowercase:      fold to lower case before matching stopwords
      - remove_punct:   drop punctuation tokens
      - remove_numbers: drop purely numeric tokens ("1990", "3.5", "2nd")
      - stopwords:      "english", None, or an iterable of words
      - stem:           apply nltk's Snowball stemmer for `language`
      - ngrams:         (min_n, max_n), n-grams joined with "_"
      - min_length:     drop tokens shorter than this many characters
    """

    def __init__(
        self,
        lowercase: bool = True,
        remove_punct: bool = True,
        remove_numbers: bool = True,
        stopwords: Union[str, Iterable[str], None] = "english",
        stem: bool = False,
        language: str = "english",
        ngrams: Sequence[int] = (1, 1),
        min_length: int = 1,
    ):
        self.lowercase = lowercase
        self.remove_punct = remove_punct
        self.remove_numbers = remove_numbers
        self.stem = stem
        self.language = language
        self.ngrams = tuple(ngrams)
        self.min_length = min_length
        if self.ngrams[0] < 1 or self.ngrams[1] < self.ngrams[0]:
            raise ValueError(f"Invalid ngrams range: {ngrams}")
        self.stopwords = self._resolve_stopwords(stopwords)
        self._stemmer = None
        self._stem_cache: Dict[str, str] = {}
        if stem:
            from nltk.stem.snowball import SnowballStemmer

            self._stemmer = SnowballStemmer(language)

    @staticmethod
    def _resolve_stopwords(stopwords) -> frozenset:
        if stopwords is None:
            return frozenset()
        if isinstance(stopwords, str):
            if stopwords.lower() == "english":
                return frozenset(ENGLISH_STOP_WORDS)
            raise ValueError(
                f"Unknown stopword list '{stopwords}'; pass 'english' or an iterable of words"
            )
        return frozenset(w.lower() for w in stopwords)

    def _stem(self, tok: str) -> str:
        stemmed = self._stem_cache.get(tok)
        if stemmed is None:
            stemmed = self._stemmer.stem(tok)
            self._stem_cache[tok] = stemmed
        return stemmed

    def tokens(self, text: str) -> List[str]:
        pattern = WORD_RE if self.remove_punct else WORD_OR_PUNCT_RE
        out = []
        for tok in pattern.findall(str(text)):
            if self.lowercase:
                tok = tok.lower()
            if self.remove_numbers and NUMBER_RE.match(tok):
                continue
            if tok.lower() in self.stopwords:
                continue
            if len(tok) < self.min_length:
                continue
            if self._stemmer is not None:
                tok = self._stem(tok)
            out.append(tok)
        return out

    def __call__(self, text: str) -> List[str]:
        toks = self.tokens(text)
        lo, hi = self.ngrams
        if (lo, hi) == (1, 1):
            return toks
        grams = []
        for n in range(lo, hi + 1):
            grams.extend("_".join(toks[i : i + n]) for i in range(len(toks) - n + 1))
        return grams

    def __getstate__(self):
        state = self.__dict__.copy()
        state["_stemmer"] = None
        return state

    def __setstate__(self, state):
        self.__dict__.update(state)
        if self.stem:
            from nltk.stem.snowball import SnowballStemmer

            self._stemmer = SnowballStemmer(self.language)


@dataclass
class Dfm:
    """Sparse document-feature matrix with document names and metadata."""

    matrix: sparse.csr_matrix
    docnames: List[str]
    features: List[str]
    docvars: pd.DataFrame = field(default_factory=pd.DataFrame)

    def __post_init__(self):
        self.matrix = sparse.csr_matrix(self.matrix)
        self.docnames = [str(d) for d in self.docnames]
        self.features = [str(f) for f in self.features]
        n, p = self.matrix.shape
        if len(self.docnames) != n:
            raise ValueError(f"{len(self.docnames)} docnames for {n} documents")
        if len(self.features) != p:
            raise ValueError(f"{len(self.features)} feature names for {p} features")
        if self.docvars is None or self.docvars.empty:
            self.docvars = pd.DataFrame(index=range(n))
        elif len(self.docvars) != n:
            raise ValueError(f"docvars has {len(self.docvars)} rows for {n} documents")
        self.docvars = self.docvars.reset_index(drop=True)

    @property
    def ndoc(self) -> int:
        return self.matrix.shape[0]

    @property
    def nfeat(self) -> int:
        return self.matrix.shape[1]

    @property
    def shape(self):
        return self.matrix.shape

    def row_sums(self) -> np.ndarray:
        return np.asarray(self.matrix.sum(axis=1)).ravel()

    def col_sums(self) -> np.ndarray:
        return np.asarray(self.matrix.sum(axis=0)).ravel()

    def doc_freq(self) -> np.ndarray:
        return np.asarray((self.matrix > 0).sum(axis=0)).ravel()

    def subset(self, rows) -> "Dfm":
        """Select documents by boolean mask or integer positions."""
        rows = np.asarray(rows)
        if rows.dtype == bool:
            if len(rows) != self.ndoc:
                raise ValueError("Boolean mask length must equal the number of documents")
            rows = np.flatnonzero(rows)
        return Dfm(
            self.matrix[rows],
            [self.docnames[i] for i in rows],
            list(self.features),
            self.docvars.iloc[rows].reset_index(drop=True),
        )

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            self.matrix.toarray(), index=self.docnames, columns=self.features
        )

    def __repr__(self) -> str:
        nnz = self.matrix.nnz
        total = max(1, self.ndoc * self.nfeat)
        return (
            f"Dfm(ndoc={self.ndoc}, nfeat={self.nfeat}, "
            f"sparsity={1 - nnz / total:.2%})"
        )


class DfmBuilder:
    """Fit a vocabulary on training texts and map texts to a Dfm."""

    def __init__(self, **params: Any):
        self.p = {**DEFAULT_DFM_PARAMS, **params}
        self.tokenizer = Tokenizer(
            lowercase=self.p["lowercase"],
            remove_punct=self.p["remove_punct"],
            remove_numbers=self.p["remove_numbers"],
            stopwords=self.p["stopwords"],
            stem=self.p["stem"],
            language=self.p["language"],
            ngrams=self.p["ngrams"],
            min_length=self.p["min_length"],
        )
        self.vectorizer: Optional[CountVectorizer] = None
        self.features_: Optional[List[str]] = None
        self._keep: Optional[np.ndarray] = None

    def _docnames(self, texts, docnames):
        if docnames is None:
            return [f"text{i + 1}" for i in range(len(texts))]
        return list(docnames)

    def fit_transform(self, texts: Sequence[str], docnames=None, docvars=None) -> Dfm:
        texts = [str(t) for t in texts]
        min_df = self.p["min_docfreq"] or 1
        if min_df > len(texts):
            min_df = 1
        self.vectorizer = CountVectorizer(
            analyzer=self.tokenizer,
            min_df=min_df,
            max_df=self.p["max_docfreq"] if self.p["max_docfreq"] is not None else 1.0,
            max_features=self.p["max_features"],
            dtype=np.int64,
        )
        X = self.vectorizer.fit_transform(texts).tocsr()
        vocab = self.vectorizer.get_feature_names_out()
        keep = np.arange(X.shape[1])
        if self.p["min_termfreq"]:
            keep = np.flatnonzero(np.asarray(X.sum(axis=0)).ravel() >= self.p["min_termfreq"])
            if len(keep) == 0:
                raise ValueError("No features left after min_termfreq trimming")
        self._keep = keep
        self.features_ = [str(vocab[i]) for i in keep]
        return Dfm(X[:, keep], self._docnames(texts, docnames), self.features_, docvars)

    def fit(self, texts: Sequence[str]) -> "DfmBuilder":
        self.fit_transform(texts)
        return self

    def transform(self, texts: Sequence[str], docnames=None, docvars=None) -> Dfm:
        if self.vectorizer is None:
            raise ValueError("DfmBuilder must be fitted before transform()")
        texts = [str(t) for t in texts]
        X = self.vectorizer.transform(texts).tocsr()[:, self._keep]
        return Dfm(X, self._docnames(texts, docnames), list(self.features_), docvars)


def build_dfm(texts: Sequence[str], docnames=None, docvars=None, **params: Any) -> Dfm:
    """One-shot tokenization + counting; params as in DEFAULT_DFM_PARAMS."""
    return DfmBuilder(**params).fit_transform(texts, docnames, docvars)


def dfm_trim(
    dfm: Dfm,
    min_termfreq: Optional[float] = None,
    min_docfreq: Optional[float] = None,
    max_docfreq: Optional[float] = None,
) -> Dfm:
    """
    Drop rare or ubiquitous features.

    Args:
        min_termfreq: Minimum total count of a feature
        min_docfreq: Minimum number of documents a feature appears in
        max_docfreq: Maximum document frequency; values < 1 are proportions

    Returns:
        Trimmed Dfm
    """
    keep = np.ones(dfm.nfeat, dtype=bool)
    if min_termfreq is not None:
        keep &= dfm.col_sums() >= min_termfreq
    docfreq = dfm.doc_freq()
    if min_docfreq is not None:
        keep &= docfreq >= min_docfreq
    if max_docfreq is not None:
        limit = max_docfreq * dfm.ndoc if max_docfreq < 1 else max_docfreq
        keep &= docfreq <= limit
    if not keep.any():
        raise ValueError("No features left after trimming")
    idx = np.flatnonzero(keep)
    return Dfm(
        dfm.matrix[:, idx], dfm.docnames, [dfm.features[i] for i in idx], dfm.docvars
    )


def dfm_weight(dfm: Dfm, scheme: str = "count") -> Dfm:
    """Reweight counts: count, prop, boolean, logcount or tfidf."""
    X = dfm.matrix.astype(float)
    if scheme == "count":
        pass
    elif scheme == "prop":
        sums = np.asarray(X.sum(axis=1)).ravel()
        sums[sums == 0] = 1.0
        X = sparse.diags(1.0 / sums) @ X
    elif scheme == "boolean":
        X = (X > 0).astype(float)
    elif scheme == "logcount":
        X = X.copy()
        X.data = 1.0 + np.log10(X.data)
    elif scheme == "tfidf":
        docfreq = np.asarray((X > 0).sum(axis=0)).ravel()
        idf = np.log10(dfm.ndoc / np.maximum(docfreq, 1))
        X = X @ sparse.diags(idf)
    else:
        raise ValueError(f"Unknown weighting scheme: {scheme}")
    return Dfm(sparse.csr_matrix(X), dfm.docnames, dfm.features, dfm.docvars)


def dfm_group(dfm: Dfm, by) -> Dfm:
    """Sum documents that share a group value (docvar name or array)."""
    groups = dfm.docvars[by].to_numpy() if isinstance(by, str) else np.asarray(by)
    if len(groups) != dfm.ndoc:
        raise ValueError("Grouping vector must have one value per document")
    codes, uniques = pd.factorize(pd.Series(groups), sort=False)
    indicator = sparse.csr_matrix(
        (np.ones(dfm.ndoc), (codes, np.arange(dfm.ndoc))),
        shape=(len(uniques), dfm.ndoc),
    )
    docvars = pd.DataFrame({by if isinstance(by, str) else "group": list(uniques)})
    return Dfm(indicator @ dfm.matrix, [str(u) for u in uniques], dfm.features, docvars)


def dfm_match(dfm: Dfm, features: Sequence[str]) -> Dfm:
    """Reorder columns to `features`; features missing from dfm become zeros."""
    pos = {f: i for i, f in enumerate(dfm.features)}
    src, dst = [], []
    for j, f in enumerate(features):
        i = pos.get(f)
        if i is not None:
            src.append(i)
            dst.append(j)
    select = sparse.csr_matrix(
        (np.ones(len(src)), (src, dst)), shape=(dfm.nfeat, len(features))
    )
    X = dfm.matrix @ select
    if np.issubdtype(dfm.matrix.dtype, np.integer):
        X = X.astype(dfm.matrix.dtype)
    return Dfm(X, dfm.docnames, list(features), dfm.docvars)


def topfeatures(dfm: Dfm, n: int = 10) -> pd.Series:
    sums = dfm.col_sums()
    order = np.argsort(-sums, kind="stable")[:n]
    return pd.Series(sums[order], index=[dfm.features[i] for i in order], name="frequency")
