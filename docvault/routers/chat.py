"""Chat-with-your-documents endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_user_id
from ..chat import ChatService
from ..database import get_db
from ..dependencies import get_chat_service
from ..models import ChatRequest, ChatResponse

router = APIRouter(tags=["Chat"])


@router.post("/chat-with-pdf", response_model=ChatResponse)
async def chat_with_pdf(
    request: ChatRequest,
    caller_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    chat: ChatService = Depends(get_chat_service),
):
    """
    Ask a question answered from the text of all of your documents.

    History is not stored; send the full question each time.
    """
    reply = await chat.ask(db, caller_id, request.question)
    return ChatResponse(reply=reply)
