# data-test hooks exposed by the storefront.
# Where no hook exists the data-test form comes first and a class fallback follows.

LOGIN = {
    "account": '[data-test="Account"]',
    "username": '[data-test="username"]',
    "password": '[data-test="password"]',
    "submit": '[data-test="log-in"]',
}

SEARCH = {
    "input": '[data-test="search-input"]:visible',
}

PRODUCT = {
    "item_number": '[data-test="item-number"]',
    "item_number_visible": '[data-test="item-number"]:visible',
    "status": '[data-test="status-message"]',
    "price": '[data-test="main-price-container"]',
    "description": '[data-test="product-description"], .productDescription',
    "ship_date": '[data-test="ship-date"]',
    "quantity": '[data-test="quantity"]',
    "special_instructions": '[data-test="special-instructions-section"] textarea.form-control',
    "add_to_cart": '[data-test="add-to-cart"]',
    "loading": ".loadingIndicatorContainer",
    "available_quantity": '[data-test="available-quantity"]',
    "modal_button": '[data-test="modal-button"]',
}

CART = {
    "item_number": '[data-test="item-number"]',
    "item_quantity": '[data-test="item-quantity"]',
    "special_instructions": '[data-test="special-instructions"]',
    "tab_link": "a.nav-link",
    "tab_count": '[data-test="cart-item-count-on-tab"]',
    "remove_all": '[data-test="remove-all-button"]',
    "confirm_remove_all": '[data-test="remove-all-items"]',
}

TEXT = {
    "cart_empty": "Your cart is empty",
    "cart_tab": "Cart Items",
    "over_stock": "Requested Quantity More than Available",
    "accept": "Yes",
}
