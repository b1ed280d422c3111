# centralgpt/api/v1/routers/chat.py
import base64
import binascii
from fastapi import APIRouter, Depends, HTTPException, status
from centralgpt.api.v1.deps import get_ctx, get_current_user
from centralgpt.context import AppContext
from centralgpt.core.errors import CentralGPTError
from centralgpt.schemas.chat import SendMessageIn, VideoIn
from centralgpt.services.chat import ChatTurn
from centralgpt.services.completion_base import Attachment

router = APIRouter(prefix="/chat", tags=["chat"], dependencies=[Depends(get_current_user)])

def _turn(t: ChatTurn) -> dict:
    return {"role": t.role, "text": t.text, "isError": t.is_error}

@router.get("/history")
async def history(ctx: AppContext = Depends(get_ctx)):
    """
    Transcript of the session user, oldest first.
    An empty transcript is returned as a single greeting turn.
    """
    turns = await ctx.chat.load_history()
    return {"success": True, "data": {"items": [_turn(t) for t in turns]}}

@router.post("/send")
async def send(body: SendMessageIn, ctx: AppContext = Depends(get_ctx)):
    """
    Send one turn (text and/or attachments) and return the model's reply.

    Completion failures are returned as a turn with isError=true rather than
    an HTTP error, so the client can render them inline.

    Raises:
        HTTPException (400): Invalid base64 attachment (BAD_ATTACHMENT)
    """
    attachments = []
    for a in body.attachments:
        try:
            data = base64.b64decode(a.data, validate=True)
        except (binascii.Error, ValueError):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                detail={"code": "BAD_ATTACHMENT", "message": "Attachment is not valid base64"})
        attachments.append(Attachment(data=data, mime_type=a.mimeType))

    try:
        reply = await ctx.chat.send(body.text, attachments)
    except CentralGPTError as e:
        return {"success": False, "error": e.to_dict()}
    return {"success": True, "data": _turn(reply)}

@router.post("/reset")
async def reset(ctx: AppContext = Depends(get_ctx)):
    """
    Delete the whole transcript of the session user.
    """
    try:
        greeting = await ctx.chat.reset()
    except CentralGPTError as e:
        return {"success": False, "error": e.to_dict()}
    return {"success": True, "data": _turn(greeting)}

@router.post("/video")
async def video(body: VideoIn, ctx: AppContext = Depends(get_ctx)):
    """
    Generate a short video. Blocks until the job finishes or the poll deadline passes.
    """
    try:
        url = await ctx.chat.generate_video(body.prompt)
    except CentralGPTError as e:
        return {"success": False, "error": e.to_dict()}
    return {"success": True, "data": {"url": url}}
