from logging import getLogger

from configuration.utils import configuration_value
from coursemigration.models import Category
from migrator.exceptions import CategoryResolutionError

logger = getLogger(__name__)


def get_restore_category(category_id=None):
    """
    Find the category a course should be restored into.

    The requested category wins if it exists. Otherwise the
    ``default_category`` configuration value is used.

    Raises:
        CategoryResolutionError: neither category exists.
    """
    if category_id:
        category = Category.objects.filter(pk=category_id).first()
        if category is not None:
            return category
        logger.info("Category %s does not exist, using the default category", category_id)

    default_category_id = configuration_value("default_category", default=0)
    if default_category_id:
        category = Category.objects.filter(pk=default_category_id).first()
        if category is not None:
            return category

    if category_id:
        reason = f"category {category_id} does not exist"
    else:
        reason = "no category was requested"
    if default_category_id:
        reason += f" and the default category {default_category_id} does not exist"
    else:
        reason += " and no default category is configured"
    raise CategoryResolutionError(reason)
