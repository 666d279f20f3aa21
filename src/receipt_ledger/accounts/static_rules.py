"""
Static seed rules: description regex -> category, vendor -> category.

Categories carry no root or business prefix ("Food:Dairy:Milk"); the
account path is built by build_account_from_category. Rules are tried in
order and the first match wins, so specific rules precede broad ones.

Every pattern is compiled at import time: a malformed rule here is a
programmer error and must fail loudly.
"""

import re
from typing import Optional

from ..schemas.mappings import AccountType

TAX_CATEGORY_PREFIX = "Taxes:"
MISC_CATEGORY = "Misc"

_RAW_DESCRIPTION_RULES: list[tuple[str, str]] = [
    # Income
    (r"(salary|wage|payroll|employment|job)", "Employment:Salary"),
    (r"(freelance|freelancing|contract|contracting|design|designing)", "Freelance:Services"),
    (r"(consulting|consultant|professional\s*service)", "Professional:Consulting"),
    (r"(investment|dividend|interest|capital\s*gains)", "Investment:Returns"),
    (r"(rental|rent\s*income|property\s*income)", "Rental:Income"),
    (r"(business\s*income|revenue|sales)", "Business:Revenue"),
    # Assets
    (r"(laptop|computer|desktop|macbook)", "Electronics:Computer"),
    (r"(phone|iphone|android|mobile)", "Electronics:Phone"),
    (r"(furniture|desk|chair|table)", "Office:Furniture"),
    (r"(equipment|machinery|tools)", "Business:Equipment"),
    # Liabilities
    (r"(student\s*loan|education\s*loan)", "Debt:Education"),
    (r"(car\s*loan|auto\s*loan|vehicle\s*loan)", "Debt:Vehicle"),
    (r"(home\s*loan|house\s*loan|mortgage)", "Debt:Mortgage"),
    (r"(credit\s*card|debt|loan)", "Debt:CreditCard"),
    # Professional services
    (r"(legal|lawyer|attorney|law\s*firm)", "Professional:Legal"),
    (r"(architect|architectural|design\s*service)", "Professional:Architecture"),
    (r"(accountant|accounting|bookkeeping)", "Professional:Accounting"),
    # Utilities & housing
    (r"\b(rent)\b", "Housing:Rent"),
    (r"(electricity|electric\s*bill)", "Utilities:Electricity"),
    (r"(water\s*bill|water\s*supply)", "Utilities:Water"),
    (r"(internet\s*home|wifi|broadband)", "Utilities:Internet"),
    (r"(condo\s*fee|management\s*fee|maintenance\s*fee)", "Housing:Fees"),
    (r"(cleaning\s*supplies|appliances)", "Home:Supplies"),
    # Financial services
    (r"(bank\s*fee|banking\s*fee|atm\s*fee|transfer\s*fee)", "Financial:Fees"),
    (r"(cash\s*withdrawal|money\s*transfer)", "Financial:Transfer"),
    (r"(insurance)", "Financial:Insurance"),
    # Electronics & shopping
    (r"(ipad|apple\s*watch|airpods)", "Electronics:Apple"),
    (r"(itunes|app\s*store)", "Subscription:Apple"),
    (r"(headphone|earbud|speaker|bluetooth)", "Electronics:Audio"),
    (r"(usb\s*c?|charger|power\s*bank|cable|adapter)", "Electronics:Accessories"),
    (r"(lazada|online\s*shopping)", "Shopping:Online"),
    (r"(jewelry|purse|handbag)", "Shopping:Accessories"),
    (r"(home\s*decor)", "Shopping:Home"),
    (r"(gadget|electronics)", "Electronics"),
    # Thai and regional food
    (r"(pad\s*thai|som\s*tam|tom\s*yum|mango\s*sticky\s*rice|green\s*curry)", "Food:Thai"),
    (r"(instant\s*noodles|mama\s*noodles)", "Food:Noodles:Instant"),
    (r"(street\s*food|food\s*court)", "Food:Dining:StreetFood"),
    (r"(japanese|sushi|ramen|sashimi)", "Food:Japanese"),
    (r"(korean|kimchi|bulgogi)", "Food:Korean"),
    (r"(chinese|dim\s*sum|fried\s*rice)", "Food:Chinese"),
    (r"(indian|biryani|masala)", "Food:Indian"),
    # Beverages
    (r"(bubble\s*tea|boba|thai\s*(iced\s*)?tea|milk\s*tea)", "Food:Beverages:BubbleTea"),
    (r"(smoothie|juice)", "Food:Beverages:Smoothie"),
    (r"(coconut\s*water)", "Food:Beverages:CoconutWater"),
    (r"\b(tea|matcha|oolong|earl\s*grey)\b", "Food:Tea"),
    (r"\b(beer|lager|stout|pilsner)\b", "Food:Beer"),
    (r"\b(wine|champagne)\b", "Food:Wine"),
    # Health
    (r"(doctor|clinic|hospital|medical)", "Health:Medical"),
    (r"(dentist|dental)", "Health:Dental"),
    (r"(pharmacy|medicine|vitamins?|supplements?)", "Health:Pharmacy"),
    (r"(massage|spa\b|salon|haircut|nails)", "Personal:Care"),
    (r"(skincare|cosmetics|makeup)", "Personal:Toiletries"),
    (r"(gym|fitness|personal\s*training)", "Health:Fitness"),
    (r"(dry\s*cleaning|laundry\s*service)", "Personal:Services"),
    # Dairy
    (r"(peanut\s*butter|nut\s*butter|almond\s*butter)", "Food:Pantry:NutButter"),
    (r"(butter|margarine|ghee)", "Food:Dairy:Butter"),
    (r"\b(eggs?|egg\s*whites?)\b", "Food:Dairy:Eggs"),
    (r"(milk|almond\s*milk|soy\s*milk)", "Food:Dairy:Milk"),
    (r"(cheese|cheddar|mozzarella|parmesan|brie|gouda)", "Food:Dairy:Cheese"),
    (r"(yogurt|yoghurt)", "Food:Dairy:Yogurt"),
    (r"(ice\s*cream|chocolate|candy)", "Food:Snacks:Sweet"),
    (r"(heavy\s*cream|whipping\s*cream|sour\s*cream|\bcream\b)", "Food:Dairy:Cream"),
    (r"(dairy)", "Food:Dairy"),
    # Meat
    (r"(beef|steak|burger)", "Food:Meat:Beef"),
    (r"(chicken|poultry)", "Food:Meat:Chicken"),
    (r"(pork|bacon|\bham\b)", "Food:Meat:Pork"),
    (r"(fish|salmon|tuna|shrimp|prawn|seafood)", "Food:Meat:Seafood"),
    (r"\b(meat|protein)\b", "Food:Meat"),
    # Grains
    (r"(bread|toast|\bbuns?\b|\brolls?\b)", "Food:Grains:Bread"),
    (r"(\brice\b|basmati|jasmine)", "Food:Grains:Rice"),
    (r"(pasta|spaghetti|penne|macaroni|noodle)", "Food:Grains:Pasta"),
    (r"(\boats?\b|oatmeal|porridge)", "Food:Grains:Oats"),
    (r"(cereal)", "Food:Grains:Cereal"),
    (r"\b(grains?)\b", "Food:Grains"),
    # Education
    (r"(school|tuition|education|enrol?l?ment|registration\s*fee|ค่าเทอม|学费)", "Education:Tuition"),
    (r"(uniform)", "Education:Uniforms"),
    (r"(textbook|workbook|stationer(y|ies))", "Education:BooksSupplies"),
    (r"(field\s*trip|excursion)", "Education:Activities"),
    # Pantry
    (r"\b(jam|jelly|marmalade)\b", "Food:Pantry:Jam"),
    (r"(honey|syrup)", "Food:Pantry:Sweeteners"),
    (r"(olive\s*oil|vegetable\s*oil|cooking\s*oil)", "Food:Pantry:Oils"),
    (r"(vinegar|balsamic)", "Food:Pantry:Vinegars"),
    (r"(sauce|ketchup|mustard|mayonnaise|condiment)", "Food:Pantry:Condiments"),
    (r"(pantry)", "Food:Pantry"),
    # Vegetables
    (r"(lettuce|salad|greens|spinach|kale)", "Food:Vegetables:Leafy"),
    (r"(tomato)", "Food:Vegetables:Tomatoes"),
    (r"(onion|garlic|shallot|leek)", "Food:Vegetables:Alliums"),
    (r"(carrot)", "Food:Vegetables:Carrots"),
    (r"(bell\s*pepper|chili|jalapeno)", "Food:Vegetables:Peppers"),
    (r"(broccoli|cauliflower|cabbage)", "Food:Vegetables:Cruciferous"),
    (r"\b(beans?|legumes?|lentils?|chickpeas?)\b", "Food:Vegetables:Legumes"),
    (r"\b(veg|vegetables?|veggies)\b", "Food:Vegetables"),
    # Snacks
    (r"(chips|crackers|cookies|biscuit)", "Food:Snacks:Savory"),
    (r"(seaweed|\bnuts\b|dried\s*fruit)", "Food:Snacks:Healthy"),
    # Fruit
    (r"(banana)", "Food:Fruit:Bananas"),
    (r"(orange|mandarin|tangerine|lemon|\blimes?\b)", "Food:Fruit:Citrus"),
    (r"(grape)", "Food:Fruit:Grapes"),
    (r"(mango)", "Food:Fruit:Mangoes"),
    (r"(berry|berries)", "Food:Fruit:Berries"),
    (r"\b(fruits?|apples?|durian|papaya|pineapple|watermelon)\b", "Food:Fruit"),
    # Dining
    (r"(restaurant|\bdine\b|\bmeal\b|lunch|dinner|snack|takeaway|take\s*out)", "Food:Dining"),
    (r"(pastr(y|ies)|cake|donut|croissant|muffin|bagel|scone)", "Food:Bakery"),
    (r"(groceries|grocery)", "Food:Groceries"),
    (r"\b(mug|cup|glass|plate|bowl|utensil|fork|spoon|knife)\b", "Household:Kitchenware"),
    # Coffee is anchored so "coffee mug" stays kitchenware
    (r"^(coffee|iced\s*coffee|latte|espresso|americano|cappuccino|mocha)$", "Food:Coffee"),
    # Transport
    (r"(motorbike\s*taxi|motorcycle\s*taxi)", "Transport:MotorbikeTaxi"),
    (r"\b(grab|uber|taxi|ride\s*hailing)\b", "Transport:RideHailing"),
    (r"\b(bts|mrt|skytrain|subway|metro)\b", "Transport:PublicTransit"),
    (r"\b(bus|public\s*bus)\b", "Transport:Bus"),
    (r"(tuk\s*tuk|\bboat\b|ferry|airport\s*link)", "Transport:Specialty"),
    (r"(flight|airline|\bplane\b)", "Transport:Air"),
    (r"(hotel|accommodation)", "Transport:Accommodation"),
    (r"(\bgas\b|fuel|petrol|diesel|gasoline)", "Transport:Fuel"),
    (r"(parking|\btoll\b|tollway|easypass)", "Transport:Fees"),
    (r"(car\s*wash|\brepair\b|\btires?\b)", "Transport:Maintenance"),
    # Subscriptions
    (r"(netflix|spotify|youtube\s*premium|disney\s*plus|apple\s*music)", "Subscription:Entertainment"),
    (r"(supabase|vercel|netlify|\baws\b|digital\s*ocean)", "Subscription:Infrastructure"),
    (r"(subscription|saas|hosting|domain)", "Subscription:Software"),
    (r"\b(software|license)\b", "Software"),
    # Business
    (r"(inventory|materials)", "Supplies:General"),
    (r"(napkin|packaging|disposable)", "Supplies:Packaging"),
    (r"\b(supplies)\b", "Supplies"),
    (r"(marketing|advertising|\bads\b|promotion)", "Marketing:Advertising"),
    # Household
    (r"(towel|linen|blanket|pillow)", "Household:HomeGoods"),
    (r"(detergent|cleaner|toilet\s*paper)", "Household:Supplies"),
    (r"(toothpaste|toothbrush|floss|mouthwash|shampoo|conditioner|\bsoap\b|lotion|deodorant)", "Toiletries"),
    # Personal
    (r"\b(shirt|pants|jeans|dress|skirt|jacket|shoes?|sneakers?|socks?)\b", "Clothing"),
    (r"\b(movie|cinema|game|concert)\b", "Entertainment"),
    # Taxes are never business-prefixed
    (r"^tax$", "Taxes:Sales"),
]

DESCRIPTION_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(pattern, re.IGNORECASE), category)
    for pattern, category in _RAW_DESCRIPTION_RULES
]

VENDOR_EXACT: dict[str, str] = {
    "grab": "Transport:RideHailing",
    "bts": "Transport:PublicTransit",
    "mrt": "Transport:PublicTransit",
    "starbucks": "Food:Coffee",
    "7-eleven": "Food:Groceries",
}

VENDOR_CONTAINS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(pattern, re.IGNORECASE), category)
    for pattern, category in [
        (r"7\s*eleven|7-?11", "Food:Groceries"),
        (r"villa\s*market", "Food:Groceries"),
        (r"big\s*c\b", "Food:Groceries"),
        (r"lotus", "Food:Groceries"),
        (r"walmart", "Food:Groceries"),
        (r"costco", "Food:Groceries"),
        (r"amazon\s*coffee|cafe\s*amazon", "Food:Coffee"),
        (r"starbucks", "Food:Coffee"),
        (r"blue\s*bottle", "Food:Coffee"),
        (r"grab", "Transport:RideHailing"),
        (r"uber", "Transport:RideHailing"),
        (r"kasikorn|k\s*bank", "Financial:Banking"),
        (r"bangkok\s*bank", "Financial:Banking"),
        (r"lazada", "Shopping:Online"),
    ]
]

_ROOT_BY_TYPE = {
    AccountType.EXPENSE: "Expenses",
    AccountType.INCOME: "Income",
    AccountType.ASSET: "Assets",
    AccountType.LIABILITY: "Liabilities",
    AccountType.EQUITY: "Equity",
}


def account_root(account_type: AccountType | str = AccountType.EXPENSE) -> str:
    """Top-level segment for an account type ("transfer" behaves like expense)."""
    try:
        return _ROOT_BY_TYPE[AccountType(account_type)]
    except ValueError:
        return "Expenses"


def build_account_from_category(
    category: str,
    business: str,
    account_type: AccountType | str = AccountType.EXPENSE,
) -> str:
    """
    Build a full account path from a bare category.

    Examples:
        >>> build_account_from_category("Food:Dairy:Butter", "MyShop")
        'Expenses:MyShop:Food:Dairy:Butter'
        >>> build_account_from_category("Taxes:Sales", "MyShop")
        'Expenses:Taxes:Sales'
    """
    if category.startswith(TAX_CATEGORY_PREFIX):
        return f"Expenses:{category}"
    return f"{account_root(account_type)}:{business}:{category}"


def find_description_category(description: str) -> Optional[str]:
    desc = description.lower().strip()
    for pattern, category in DESCRIPTION_RULES:
        if pattern.search(desc):
            return category
    return None


def find_vendor_category(vendor: Optional[str]) -> Optional[str]:
    if not vendor:
        return None
    v = vendor.lower().strip()
    if v in VENDOR_EXACT:
        return VENDOR_EXACT[v]
    for pattern, category in VENDOR_CONTAINS:
        if pattern.search(v):
            return category
    return None


def map_account_static(
    description: str,
    vendor: Optional[str] = None,
    business: str = "Personal",
    account_type: AccountType | str = AccountType.EXPENSE,
) -> str:
    """Description rules first, vendor tables second, then <Root>:<Business>:Misc."""
    category = find_description_category(description)
    if category is None:
        category = find_vendor_category(vendor)
    if category is None:
        category = MISC_CATEGORY
    return build_account_from_category(category, business, account_type)
