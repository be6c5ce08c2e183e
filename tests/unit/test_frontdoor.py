import pytest

from formula_ocr import frontdoor
from formula_ocr.core.exceptions import HttpStatusError, ParseError
from formula_ocr.core.models import Verification, VerificationIssue
from formula_ocr.pipeline import CollectingProgressSink

pytestmark = pytest.mark.unit


@pytest.mark.asyncio
async def test_recognize_persists_to_configured_data_dir(settings, make_backend, png_base64):
    history = frontdoor.open_history(settings)
    sink = CollectingProgressSink()

    record = await frontdoor.recognize(
        png_base64,
        settings=settings,
        backend=make_backend(),
        history=history,
        progress=sink,
    )

    assert record.original_image.startswith(str(settings.pictures_dir))
    assert settings.history_path.exists()
    assert history.get() == [record]
    assert {e.prompt_version for e in sink.events} == {"full"}


@pytest.mark.asyncio
async def test_recognize_uses_assembled_prompts(settings, make_backend, png_base64):
    backend = make_backend()
    await frontdoor.recognize(png_base64, settings=settings, backend=backend)

    ((prompt, _image),) = backend.called("extract_latex")
    assert prompt == settings.build_prompt_set().extraction


@pytest.mark.asyncio
async def test_test_connection_sends_ping(settings, make_backend):
    backend = make_backend()
    assert await frontdoor.test_connection(settings=settings, backend=backend) == "ok"
    assert backend.called("generate_raw") == [("ping",)]


@pytest.mark.asyncio
async def test_test_connection_propagates_errors(settings, make_backend):
    backend = make_backend(errors={"generate_raw": HttpStatusError(403, "denied")})
    with pytest.raises(HttpStatusError):
        await frontdoor.test_connection(settings=settings, backend=backend)


@pytest.mark.asyncio
async def test_retry_analysis_returns_fresh_result(settings, make_backend, png_base64):
    title, analysis = await frontdoor.retry_analysis(
        png_base64, settings=settings, backend=make_backend()
    )
    assert title == "Mass-energy equivalence"
    assert analysis.summary == "Mass-energy equivalence."


@pytest.mark.asyncio
async def test_retry_analysis_does_not_degrade(settings, make_backend, png_base64):
    backend = make_backend(errors={"generate_analysis": ParseError("garbled")})
    with pytest.raises(ParseError):
        await frontdoor.retry_analysis(png_base64, settings=settings, backend=backend)


@pytest.mark.asyncio
async def test_retry_verification_prefers_structured(settings, make_backend, png_base64):
    structured = Verification(
        status="warning",
        issues=[VerificationIssue(category="layout_mismatch", message="spacing")] * 6,
    )
    backend = make_backend(structured=structured)

    result, verification = await frontdoor.retry_verification(
        "E = mc^2", png_base64, settings=settings, backend=backend
    )

    assert result.confidence_score == 68
    assert verification == structured
    assert backend.called("verify") == []


@pytest.mark.asyncio
async def test_retry_verification_falls_back_to_report(settings, make_backend, png_base64):
    backend = make_backend()

    result, verification = await frontdoor.retry_verification(
        "E = mc^2", png_base64, settings=settings, backend=backend
    )

    assert (result.confidence_score, verification) == (92, None)


@pytest.mark.asyncio
async def test_retry_verification_never_raises(settings, make_backend, png_base64):
    backend = make_backend(errors={"verify": HttpStatusError(500, "boom")})

    result, verification = await frontdoor.retry_verification(
        "E = mc^2", png_base64, settings=settings, backend=backend
    )

    assert result.confidence_score == 0
    assert result.verification_report == "verification failed"
    assert verification is None


@pytest.mark.asyncio
async def test_confidence_for_latex_is_text_only(settings, make_backend):
    backend = make_backend()

    assert await frontdoor.confidence_for_latex("x^2", settings=settings, backend=backend) == 92
    ((_prompt, latex, image),) = backend.called("verify")
    assert (latex, image) == ("x^2", None)
