# Import all models so they register themselves on Base.metadata
# for Alembic autogeneration and test schema creation.
from idregistry.db.base import Base  # noqa: F401
from idregistry.models.publisher import PublisherIsbn  # noqa: F401
from idregistry.models.ranges import (  # noqa: F401
    IsbnRange,
    IsbnSubRange,
    IsbnSubRangeCanceled,
    IsmnRange,
    IsmnSubRange,
    IsmnSubRangeCanceled,
)
from idregistry.models.publication import MessageIsbn, PublicationIsbn  # noqa: F401
from idregistry.models.identifiers import (  # noqa: F401
    Identifier,
    IdentifierBatch,
    IdentifierBatchDownload,
    IdentifierCanceled,
)
from idregistry.models.issn import (  # noqa: F401
    IssnCanceled,
    IssnForm,
    IssnRange,
    IssnUsed,
    PublicationIssn,
    PublisherIssn,
)
