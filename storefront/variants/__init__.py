from storefront.variants.resolver import VariantResolver  # noqa: F401
from storefront.variants.selection import VariationSelection, variation_signature  # noqa: F401
