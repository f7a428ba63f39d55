"""Общие обработчики оценок для статей и курсов"""
import uuid

from ..schemas.feedback import FeedbackCreate, FeedbackDeleteResponse, FeedbackListResponse, FeedbackRead
from ..services.content import FeedbackService


async def list_feedback(service: FeedbackService, parent_id: uuid.UUID) -> FeedbackListResponse:
    parent, entries = await service.list(parent_id)
    return FeedbackListResponse(
        count=len(entries),
        average_rating=parent.average_rating,
        data=[FeedbackRead.model_validate(entry) for entry in entries],
    )


async def add_feedback(service: FeedbackService, parent_id: uuid.UUID, payload: FeedbackCreate) -> FeedbackRead:
    entry = await service.add(parent_id, payload.rating, payload.comment)
    return FeedbackRead.model_validate(entry)


async def delete_feedback(service: FeedbackService, parent_id: uuid.UUID, feedback_id: int) -> FeedbackDeleteResponse:
    average = await service.delete(parent_id, feedback_id)
    return FeedbackDeleteResponse(message="Feedback deleted successfully", average_rating=average)
