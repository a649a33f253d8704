from __future__ import annotations

import uuid
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException

from helpdesk.api.deps import get_services
from helpdesk.api.utils import list_response
from helpdesk.models import AiAgentConfig, AiFeedback
from helpdesk.schemas.agent_config import AgentConfig, AgentConfigOut, AgentConfigUpdate
from helpdesk.schemas.ai import (
    ClarityRequest,
    DuplicateCheckRequest,
    ExecuteStepRequest,
    FeedbackCreate,
    FeedbackOut,
    FlowCreate,
    NextStepIn,
)
from helpdesk.services.container import Services
from helpdesk.services.troubleshooting import Flow, NextStep, Step, Transition
from helpdesk.utils.time import isoformat, utc_now

router = APIRouter(prefix="/api/ai", tags=["ai"])


def _flow_out(flow: Flow) -> dict:
    return {
        "id": flow.id,
        "name": flow.name,
        "device_model": flow.device_model,
        "description": flow.description,
        "steps": [
            {
                "step": step.number,
                "instruction": step.instruction,
                "check_phrase": step.check_phrase,
                "on_success": {"kind": step.on_success.kind.value, "step": step.on_success.step},
                "on_failure": {"kind": step.on_failure.kind.value, "step": step.on_failure.step},
            }
            for step in flow.steps
        ],
    }


def _next_step(payload: NextStepIn) -> NextStep:
    kind = Transition(payload.kind)
    return NextStep(kind, payload.step if kind is Transition.GOTO else None)


@router.get("/flows", response_model=list[dict])
async def list_flows(services: Services = Depends(get_services)) -> list[dict]:
    return [_flow_out(flow) for flow in services.flows.list_flows()]


@router.post("/flows", response_model=dict, status_code=201)
async def create_flow(
    payload: FlowCreate,
    services: Services = Depends(get_services),
) -> dict:
    steps = [
        Step(
            number=item.step,
            instruction=item.instruction,
            check_phrase=item.check_phrase,
            on_success=_next_step(item.on_success),
            on_failure=_next_step(item.on_failure),
        )
        for item in sorted(payload.steps, key=lambda item: item.step)
    ]
    try:
        flow = services.flows.register_pattern_flow(
            payload.id,
            payload.name,
            payload.pattern,
            steps,
            device_model=payload.device_model,
            description=payload.description,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _flow_out(flow)


@router.post("/flows/execute", response_model=dict)
async def execute_step(
    payload: ExecuteStepRequest,
    services: Services = Depends(get_services),
) -> dict:
    result = services.flows.execute_step(
        payload.ticket_id, payload.flow_id, payload.step, payload.user_response
    )
    if result is None:
        raise HTTPException(status_code=404, detail="Flow step not found")
    return result.to_dict()


@router.get("/memory/{ticket_id}", response_model=dict)
async def get_memory(
    ticket_id: str,
    services: Services = Depends(get_services),
) -> dict:
    if not services.memory.has(ticket_id):
        raise HTTPException(status_code=404, detail="No conversation memory for ticket")
    return services.memory.get(ticket_id).to_dict()


@router.post("/check-duplicate", response_model=dict)
async def check_duplicate(
    payload: DuplicateCheckRequest,
    services: Services = Depends(get_services),
) -> dict:
    return asdict(services.memory.check_duplicate(payload.ticket_id, payload.question))


@router.post("/analyze-clarity", response_model=dict)
async def analyze_clarity(
    payload: ClarityRequest,
    services: Services = Depends(get_services),
) -> dict:
    return services.clarity.optimize(payload.text).to_dict()


@router.post("/feedback", response_model=FeedbackOut, status_code=201)
async def create_feedback(
    payload: FeedbackCreate,
    services: Services = Depends(get_services),
) -> FeedbackOut:
    await services.tickets.get_ticket(payload.ticket_id)
    feedback = await services.stores.feedback.add(
        AiFeedback(
            id=str(uuid.uuid4()),
            message_id=payload.message_id,
            ticket_id=payload.ticket_id,
            feedback=payload.feedback,
            agent_rewrite=payload.agent_rewrite,
            created_at=utc_now(),
        )
    )
    return FeedbackOut.model_validate(feedback)


@router.get("/stats", response_model=dict)
async def stats(services: Services = Depends(get_services)) -> dict:
    _, escalated = await services.stores.tickets.find(ai_disabled_reason="escalation", limit=1)
    return {
        "tickets_with_memory": len(services.memory),
        "flows_registered": len(services.flows.list_flows()),
        "ai_responses": await services.stores.ai_responses.count(),
        "escalated_tickets": escalated,
        "llm_configured": services.completion is not None,
    }


@router.get("/config", response_model=dict)
async def get_config(services: Services = Depends(get_services)) -> dict:
    record = await services.stores.agent_configs.get_active()
    return {
        "stored": (
            AgentConfigOut.model_validate(record).model_dump(mode="json") if record else None
        ),
        "effective": AgentConfig.from_record(record).model_dump(),
    }


@router.put("/config", response_model=AgentConfigOut)
async def update_config(
    payload: AgentConfigUpdate,
    services: Services = Depends(get_services),
) -> AgentConfigOut:
    record = await services.stores.agent_configs.get_active()
    now = utc_now()
    if record is None:
        record = AiAgentConfig(active=True, created_at=now)
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(record, key, value)
    record.updated_at = now
    record = await services.stores.agent_configs.save(record)
    return AgentConfigOut.model_validate(record)


@router.get("/logs", response_model=dict)
async def recent_logs(
    event_type: str | None = None,
    limit: int = 50,
    services: Services = Depends(get_services),
) -> dict:
    logs = await services.stores.app_logs.recent(event_type, max(1, min(limit, 500)))
    items = [
        {
            "id": log.id,
            "level": log.level,
            "event_type": log.event_type,
            "message": log.message,
            "data": log.data,
            "created_at": isoformat(log.created_at),
        }
        for log in logs
    ]
    return list_response(items, len(items))
