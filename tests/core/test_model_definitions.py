import json
import textwrap

import pytest
from pydantic import ValidationError

from core.llm import Capability, ModelLoadError
from core.registry import DefinitionSource, ModelCategory, ModelDefinition, load_definitions
from core.registry.definitions import LocalWeightsParams, OpenAIChatParams
from core.registry.loader import definition_from_row


def _write(dirpath, name, text):
    (dirpath / name).write_text(textwrap.dedent(text), encoding="utf-8")


def test_yaml_dir_loaded_by_id(tmp_path):
    _write(
        tmp_path,
        "a.yaml",
        """
        id: 1
        name: minilm
        category: bi-encoder
        params:
          code: embedding-weights
          location: huggingface:sentence-transformers/all-MiniLM-L6-v2
        """,
    )
    _write(
        tmp_path,
        "b.yaml",
        """
        id: 2
        name: tiny
        category: chat
        params:
          code: local-weights
          architecture: llama
          location: https://example.com/tiny.gguf
          tokenizer_location: huggingface:org/tok
        """,
    )
    index = load_definitions(tmp_path)
    assert sorted(index) == [1, 2]
    assert index[1].category is ModelCategory.BI_ENCODER
    tiny = index[2]
    assert isinstance(tiny.params, LocalWeightsParams)
    assert tiny.params.tokenizer_location == "huggingface:org/tok"
    assert tiny.capabilities() == (Capability.CHAT, Capability.COMPLETION)


def test_duplicate_ids_rejected(tmp_path):
    body = """
    id: 5
    name: dup
    category: chat
    params: {code: openai-chat}
    """
    _write(tmp_path, "a.yaml", body)
    _write(tmp_path, "b.yaml", body)
    with pytest.raises(ModelLoadError):
        load_definitions(tmp_path)


def test_tabs_tolerated(tmp_path):
    (tmp_path / "t.yaml").write_text(
        "id: 9\nname: tabbed\ncategory: complete\nparams:\n\tcode: openai-completions\n",
        encoding="utf-8",
    )
    assert load_definitions(tmp_path)[9].params.code == "openai-completions"


def test_missing_dir_is_empty(tmp_path):
    assert load_definitions(tmp_path / "nope") == {}


def test_row_with_json_params_string():
    row = {
        "id": 3,
        "name": "gpt",
        "category": "instruct",
        "params": json.dumps({"code": "openai-chat", "model": "gpt-4o-mini"}),
    }
    d = definition_from_row(row)
    assert isinstance(d.params, OpenAIChatParams)
    assert d.params.model == "gpt-4o-mini"
    assert d.capabilities() == (Capability.CHAT, Capability.COMPLETION)
    # whole-row JSON
    assert definition_from_row(json.dumps(row)).id == 3


@pytest.mark.parametrize(
    "row",
    [
        {"id": 1, "name": "x", "category": "chat", "params": {"code": "ggml"}},
        {"id": 1, "name": "x", "category": "video", "params": {"code": "openai-chat"}},
        {"id": 1, "name": " ", "category": "chat", "params": {"code": "openai-chat"}},
        {"id": 1, "name": "x", "category": "chat", "params": "{broken"},
        {
            "id": 1,
            "name": "x",
            "category": "complete",
            "params": {"code": "local-weights", "location": "https://h/x.gguf"},
        },
    ],
)
def test_invalid_rows(row):
    with pytest.raises(ModelLoadError):
        definition_from_row(row)


def test_definitions_frozen():
    d = ModelDefinition.model_validate(
        {"id": 1, "name": "x", "category": "chat", "params": {"code": "openai-chat"}}
    )
    with pytest.raises(ValidationError):
        d.name = "changed"
    with pytest.raises(ValidationError):
        d.params.model = "changed"


def test_definition_source_lookup():
    source = DefinitionSource.from_rows(
        [
            {"id": 2, "name": "b", "category": "chat", "params": {"code": "openai-chat"}},
            {"id": 1, "name": "a", "category": "complete", "params": {"code": "openai-completions"}},
        ]
    )
    assert [d.id for d in source.all()] == [1, 2]
    assert 2 in source and 3 not in source
    assert source.get(3) is None
    assert len(source) == 2
