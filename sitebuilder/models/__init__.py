from sitebuilder.db.base_class import Base
from sitebuilder.models.user import User, UserMeta
from sitebuilder.models.company import Company
from sitebuilder.models.site import Site, SiteMeta
