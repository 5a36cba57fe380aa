from fastapi import FastAPI

from idregistry.api.routers.identifier_batches import router as identifier_batches_router
from idregistry.api.routers.identifiers import router as identifiers_router
from idregistry.api.routers.issn import router as issn_router
from idregistry.api.routers.ranges import router as ranges_router
from idregistry.api.routers.subranges import router as subranges_router

app = FastAPI(title="Identifier Registry API")

app.include_router(ranges_router)
app.include_router(subranges_router)
app.include_router(identifiers_router)
app.include_router(identifier_batches_router)
app.include_router(issn_router)


@app.get("/health")
def health():
    return {"status": "up"}
