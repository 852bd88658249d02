import threading

from core.llm import Capability, capabilities_of
from core.llm.embeddings import BiEncoderModel, CrossEncoderModel


class FakeSentenceTransformer:
    def __init__(self):
        self.batches = []
        self.threads = set()

    def get_sentence_embedding_dimension(self):
        return 3

    def encode(self, sentences, convert_to_numpy=True):
        self.threads.add(threading.get_ident())
        self.batches.append(list(sentences))
        return [[float(len(s)), 0.0, 1.0] for s in sentences]


class FakeCrossEncoder:
    def predict(self, pairs):
        return [float(len(q) + len(p)) for q, p in pairs]


def test_bi_encoder_encodes_in_order_on_worker_thread():
    st = FakeSentenceTransformer()
    model = BiEncoderModel(st, name="minilm")
    try:
        assert model.dimensions == 3
        out = model.encode(["a", "bbb", "cc"])
        assert model.encode([]) == []
    finally:
        assert model.close()
    assert out == [[1.0, 0.0, 1.0], [3.0, 0.0, 1.0], [2.0, 0.0, 1.0]]
    assert st.batches == [["a", "bbb", "cc"]]
    assert threading.get_ident() not in st.threads


def test_sequential_encodes_return_matching_results():
    model = BiEncoderModel(FakeSentenceTransformer(), name="seq")
    try:
        results = [model.encode(["x" * i]) for i in range(1, 6)]
    finally:
        model.close()
    assert [r[0][0] for r in results] == [1.0, 2.0, 3.0, 4.0, 5.0]


def test_cross_encoder_scores_per_passage():
    model = CrossEncoderModel(FakeCrossEncoder(), name="marco")
    try:
        scores = model.rerank("q", ["a", "bb"])
        assert model.rerank("q", []) == []
    finally:
        model.close()
    assert scores == [2.0, 3.0]


def test_capabilities_of_backends():
    bi = BiEncoderModel(FakeSentenceTransformer(), name="bi")
    cross = CrossEncoderModel(FakeCrossEncoder(), name="cross")
    try:
        assert capabilities_of(bi) == (Capability.EMBEDDING,)
        assert capabilities_of(cross) == (Capability.RERANK,)
    finally:
        bi.close()
        cross.close()
