import json

import pytest
from pydantic_ai.messages import UserPromptPart

from moonlight.flows.code_project import DEFAULT_EXPLANATION, generate_code_project
from moonlight.flows.errors import InvalidGeneratedFileError
from moonlight.flows.schemas import GenerateCodeProjectInput

from fakes import ScriptedModel, make_runtime, request_parts

TODO_APP = {
    "files": [
        {"fileName": "src/app/page.tsx", "code": "export default function Page() { return <main />; }"},
        {"fileName": "package.json", "code": '{"name": "todo-app"}'},
    ],
    "explanation": "A minimal to-do app built with Next.js.",
}


def prompt_of(scripted: ScriptedModel, call: int = 0) -> str:
    parts = [p for p in request_parts(scripted.calls[call][0]) if isinstance(p, UserPromptPart)]
    return parts[-1].content


def assert_well_formed(result):
    assert result.files
    for file in result.files:
        assert isinstance(file.file_name, str)
        assert isinstance(file.code, str)
    assert result.explanation.strip()


@pytest.mark.asyncio
async def test_generates_project_files():
    scripted = ScriptedModel(json.dumps(TODO_APP))

    result = await generate_code_project(
        GenerateCodeProjectInput(request="Generate a to-do app", enhance_request=False), make_runtime(scripted)
    )

    assert len(result.files) == 2
    assert [f.file_name for f in result.files] == ["src/app/page.tsx", "package.json"]
    assert result.explanation == "A minimal to-do app built with Next.js."
    assert len(scripted.calls) == 1
    prompt = prompt_of(scripted)
    assert "Generate a to-do app" in prompt
    assert "Next.js" in prompt


@pytest.mark.asyncio
async def test_accepts_fenced_json_and_fills_missing_explanation():
    payload = {"files": TODO_APP["files"][:1]}
    scripted = ScriptedModel(f"```json\n{json.dumps(payload)}\n```")

    result = await generate_code_project(GenerateCodeProjectInput(request="app"), make_runtime(scripted))

    assert len(result.files) == 1
    assert result.explanation == DEFAULT_EXPLANATION


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "answer",
    [
        "",
        "Sorry, I cannot help with that.",
        "[1, 2, 3]",
        json.dumps({"explanation": "no files"}),
        json.dumps({"files": "index.html", "explanation": "x"}),
        json.dumps({"files": [], "explanation": "Nothing to show"}),
    ],
)
async def test_malformed_answers_degrade_to_error_file(answer):
    scripted = ScriptedModel(answer)

    result = await generate_code_project(GenerateCodeProjectInput(request="Build a blog"), make_runtime(scripted))

    assert_well_formed(result)
    assert [f.file_name for f in result.files] == ["error.txt"]
    assert "// Original request:" in result.files[0].code
    assert "// Build a blog" in result.files[0].code


@pytest.mark.asyncio
async def test_degraded_project_keeps_partial_explanation():
    scripted = ScriptedModel(json.dumps({"files": [], "explanation": "I ran out of ideas."}))

    result = await generate_code_project(GenerateCodeProjectInput(request="Build a blog"), make_runtime(scripted))

    assert result.explanation == "I ran out of ideas."
    assert "// I ran out of ideas." in result.files[0].code


@pytest.mark.asyncio
async def test_model_failure_degrades():
    scripted = ScriptedModel(RuntimeError("quota exceeded"))

    result = await generate_code_project(GenerateCodeProjectInput(request="Build a blog"), make_runtime(scripted))

    assert [f.file_name for f in result.files] == ["error.txt"]
    assert "quota exceeded" in result.files[0].code


@pytest.mark.asyncio
async def test_legacy_single_blob_is_wrapped():
    scripted = ScriptedModel(json.dumps({"projectCode": "print('hello')", "explanation": "One file."}))

    result = await generate_code_project(GenerateCodeProjectInput(request="hello world"), make_runtime(scripted))

    assert [(f.file_name, f.code) for f in result.files] == [("project.txt", "print('hello')")]
    assert result.explanation == "One file."


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "entry",
    [
        {"fileName": "index.ts", "code": None},
        {"fileName": None, "code": "x"},
        {"code": "x"},
        "index.ts",
    ],
)
async def test_file_entries_with_wrong_types_are_rejected(entry):
    scripted = ScriptedModel(json.dumps({"files": [TODO_APP["files"][0], entry], "explanation": "x"}))

    with pytest.raises(InvalidGeneratedFileError, match="File #1"):
        await generate_code_project(GenerateCodeProjectInput(request="app"), make_runtime(scripted))


@pytest.mark.asyncio
async def test_enhanced_request_is_used_for_generation():
    scripted = ScriptedModel("A to-do app with due dates, tags and dark mode.", json.dumps(TODO_APP))

    result = await generate_code_project(
        GenerateCodeProjectInput(request="todo app", enhance_request=True), make_runtime(scripted)
    )

    assert len(result.files) == 2
    assert "todo app" in prompt_of(scripted, 0)
    assert "A to-do app with due dates, tags and dark mode." in prompt_of(scripted, 1)


@pytest.mark.asyncio
@pytest.mark.parametrize("enhancement", [RuntimeError("unavailable"), "   "])
async def test_failed_enhancement_keeps_original_request(enhancement):
    scripted = ScriptedModel(enhancement, json.dumps(TODO_APP))

    result = await generate_code_project(
        GenerateCodeProjectInput(request="todo app", enhance_request=True), make_runtime(scripted)
    )

    assert len(result.files) == 2
    assert "Request: todo app" in prompt_of(scripted, 1)


@pytest.mark.asyncio
async def test_degraded_project_mentions_enhanced_request():
    scripted = ScriptedModel("A detailed to-do app.", "not json")

    result = await generate_code_project(
        GenerateCodeProjectInput(request="todo app", enhance_request=True), make_runtime(scripted)
    )

    code = result.files[0].code
    assert "// Enhanced request:" in code
    assert "// A detailed to-do app." in code
