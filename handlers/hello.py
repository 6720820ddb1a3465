from pydantic import BaseModel

from utils.decorators import validate_input
from utils.rpc import Router

router = Router()


class HelloInput(BaseModel):
    name: str | None = None


@router.query("hello")
@validate_input(HelloInput)
def hello(ctx, data: HelloInput):
    return {"message": f"Hello {data.name or 'world'}"}
