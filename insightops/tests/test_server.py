import pytest
from fastmcp import Client
from fastmcp.exceptions import ToolError

from insightops.common.config import InsightOpsConfig
from insightops.retriever.gateway import NoProvider, ProviderGateway
from insightops.server import build_app
from insightops.tests.helpers import FakeEmbedding, make_document, make_policy


@pytest.fixture
def app(store, clock):
    document, versions = make_policy(embedding=[1.0, 0.0, 0.0])
    store.save_document(document, versions)
    store.save_document(make_document(
        "handbook", title="Employee Handbook", content="Office attendance rules.",
        embedding=[0.6, 0.8, 0.0],
    ))
    return build_app(
        config=InsightOpsConfig(),
        store=store,
        embedding=FakeEmbedding(),
        gateway=ProviderGateway(NoProvider()),
        clock=clock,
        mcp_server_name="test-insightops",
    )


def _data(result):
    data = getattr(result, "data", None) or getattr(result, "structured", None) \
           or getattr(result, "structured_content", None)
    assert data is not None, "No data returned from tool call"
    return data


# ----------- Tool Registration ----------- #
@pytest.mark.asyncio
async def test_tools_registered(app):
    async with Client(app.mcp) as client:
        tools = await client.list_tools()
        names = {t.name for t in tools}
        assert names == {
            "search_documents", "ask_question", "analyze_document",
            "batch_analyze", "review_analysis", "list_reports", "get_report", "decay_summary",
        }


# ----------- Retrieval Tools ----------- #
@pytest.mark.asyncio
async def test_search_documents(app):
    async with Client(app.mcp) as client:
        result = await client.call_tool("search_documents", {"workspace_id": "ws1", "query": "remote work"})
        data = _data(result)

        assert data["ok"] is True
        assert [r["documentId"] for r in data["results"]] == ["policy", "handbook"]
        assert data["results"][0]["similarity"] == 1.0


@pytest.mark.asyncio
async def test_search_rejects_blank_workspace(app):
    async with Client(app.mcp) as client:
        with pytest.raises(ToolError):
            await client.call_tool("search_documents", {"workspace_id": " ", "query": "remote"})


@pytest.mark.asyncio
async def test_ask_question_basic_mode(app):
    async with Client(app.mcp) as client:
        result = await client.call_tool("ask_question", {"workspace_id": "ws1", "question": "remote days?"})
        data = _data(result)

        assert data["ok"] is True
        assert data["aiAvailable"] is False
        assert data["answer"].startswith('Based on "Remote Work Policy"')
        assert "basic_mode" in [w["type"] for w in data["warnings"]]


# ----------- Decay Tools ----------- #
@pytest.mark.asyncio
async def test_analyze_review_and_summarize(app):
    async with Client(app.mcp) as client:
        result = await client.call_tool("analyze_document", {"document_id": "policy", "include_related": False})
        analysis = _data(result)["analysis"]

        assert analysis["decay_detected"] is True
        assert analysis["risk_level"] == "high"
        assert "confidence_breakdown" not in analysis

        result = await client.call_tool("review_analysis", {
            "analysis_id": analysis["id"],
            "review_status": "actioned",
            "reviewed_by": "alice",
        })
        assert _data(result)["analysis"]["review_status"] == "actioned"

        result = await client.call_tool("decay_summary", {"workspace_id": "ws1"})
        summary = _data(result)["summary"]
        assert summary["totalDocuments"] == 2
        assert summary["analyzedDocuments"] == 1
        assert summary["byRiskLevel"]["high"] == 1
        assert summary["byReviewStatus"]["actioned"] == 1


@pytest.mark.asyncio
async def test_analyze_unknown_document(app):
    async with Client(app.mcp) as client:
        result = await client.call_tool("analyze_document", {"document_id": "ghost"})
        data = _data(result)
        assert data["ok"] is False
        assert "ghost" in data["error"]


@pytest.mark.asyncio
async def test_batch_analyze_reports_missing_ids(app):
    async with Client(app.mcp) as client:
        result = await client.call_tool("batch_analyze", {"document_ids": ["policy", "ghost"]})
        data = _data(result)

        assert data["ok"] is True
        assert data["analyzed"] == 1
        assert data["errors"] == 1
        assert {"documentId": "ghost", "error": "Document not found: ghost"} in data["results"]


@pytest.mark.asyncio
async def test_invalid_review_status(app):
    async with Client(app.mcp) as client:
        result = await client.call_tool("review_analysis", {
            "analysis_id": "dec_missing", "review_status": "approved", "reviewed_by": "alice",
        })
        data = _data(result)
        assert data["ok"] is False
        assert "Invalid review status" in data["error"]


# ----------- Report Tools ----------- #
@pytest.mark.asyncio
async def test_list_reports_filters_and_pages(app):
    async with Client(app.mcp) as client:
        await client.call_tool("analyze_document", {"document_id": "policy", "include_related": False})
        await client.call_tool("analyze_document", {"document_id": "handbook", "include_related": False})

        result = await client.call_tool("list_reports", {"workspace_id": "ws1", "risk_level": "high"})
        data = _data(result)
        assert data["ok"] is True
        assert data["total"] == 1
        assert data["reports"][0]["document_id"] == "policy"
        assert "confidence_breakdown" not in data["reports"][0]

        result = await client.call_tool("list_reports", {"limit": 1, "offset": 1})
        data = _data(result)
        assert data["total"] == 2
        assert len(data["reports"]) == 1


@pytest.mark.asyncio
async def test_list_reports_rejects_unknown_risk_level(app):
    async with Client(app.mcp) as client:
        result = await client.call_tool("list_reports", {"risk_level": "severe"})
        data = _data(result)
        assert data["ok"] is False
        assert "Invalid risk level" in data["error"]


@pytest.mark.asyncio
async def test_get_report_returns_latest_analysis(app):
    async with Client(app.mcp) as client:
        result = await client.call_tool("analyze_document", {"document_id": "policy", "include_related": False})
        analysis_id = _data(result)["analysis"]["id"]

        result = await client.call_tool("get_report", {"document_id": "policy"})
        data = _data(result)
        assert data["ok"] is True
        assert data["analysis"]["id"] == analysis_id


@pytest.mark.asyncio
async def test_get_report_for_unanalyzed_document(app):
    async with Client(app.mcp) as client:
        result = await client.call_tool("get_report", {"document_id": "handbook"})
        data = _data(result)
        assert data["ok"] is False
        assert "No decay report" in data["error"]
