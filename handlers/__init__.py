"""
Handlers package for RPC procedures.

Each module registers its procedures on its own Router; ``app_router``
mounts them under their namespace (``auth.signIn``, ``planner.getPlans``,
...).
"""

from utils.rpc import Router

from . import auth, hello, investments, planner, plaid

app_router = Router()


@app_router.query("health")
def health(ctx, raw_input):
    return {"ok": True}


app_router.merge("hello", hello.router)
app_router.merge("auth", auth.router)
app_router.merge("planner", planner.router)
app_router.merge("plaid", plaid.router)
app_router.merge("investments", investments.router)

__all__ = ["app_router", "auth", "hello", "investments", "planner", "plaid"]
