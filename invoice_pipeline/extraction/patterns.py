"""
Extraction Patterns Module.

Regular expressions shared by the field and line-item extractors. All
field patterns capture the value in group 1 and are compiled with
IGNORECASE | MULTILINE unless stated otherwise.

Author: ML Engineering Team
"""

import re

FLAGS = re.IGNORECASE | re.MULTILINE

# Horizontal whitespace only, so a pattern never jumps to the next line
H = r'[^\S\n]*'

# =============================================================================
# BUILDING BLOCKS
# =============================================================================

CURRENCY = r'(?:C\$|A\$|[$£€¥₹])'
# Amount with optional thousands separators and optional cents
AMOUNT = r'\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?'
# Amount that must carry cents
AMOUNT_DEC = r'\d{1,3}(?:,\d{3})+\.\d{2}|\d+\.\d{2}'
QUANTITY = r'\d+(?:\.\d+)?'

MONTH = r'(?:jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec)[a-z]*\.?'
DATE = (
    r'(?:\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}'
    r'|\d{4}[/\-.]\d{1,2}[/\-.]\d{1,2}'
    rf'|{MONTH}{H}\d{{1,2}}(?:st|nd|rd|th)?,?{H}\d{{4}}'
    rf'|\d{{1,2}}(?:st|nd|rd|th)?(?:{H}|-){MONTH}[,\-]?{H}\d{{4}})'
)

EMAIL = r'[\w.+-]+@[A-Za-z0-9-]+(?:\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}'
PHONE = r'\+?\(?\d[\d().\- ]{6,}\d'


def amount_line(label: str) -> re.Pattern:
    """
    Pattern for a summary line that starts with a label and ends with
    an amount, e.g. "Tax (8%): $4.00". The last amount on the line is
    captured. Words between label and amount are only allowed inside
    parentheses or as an ISO currency code, so "Tax consulting 1 200.00"
    is not a tax line.
    """
    return re.compile(
        rf'^{H}(?:{label})\b(?:{H}\([^)\n]*\))?[^A-Za-z\n]*?'
        rf'(?:(?-i:[A-Z]{{3}}){H})?{CURRENCY}?{H}({AMOUNT}){H}\)?{H}$',
        FLAGS
    )


# =============================================================================
# LINE ITEMS
# =============================================================================

# Shapes, most specific first. Each is registered with its own parser.
ITEM_FULL = re.compile(
    rf'^(?P<description>.{{3,80}}?)\s+(?P<quantity>{QUANTITY})\s+{CURRENCY}?\s*'
    rf'(?P<unit_price>{AMOUNT})\s+{CURRENCY}?\s*(?P<amount>{AMOUNT_DEC})$'
)
ITEM_QTY_TIMES_PRICE = re.compile(
    rf'^(?P<description>.{{3,80}}?)\s+(?P<quantity>{QUANTITY})\s*[×xX*]\s*{CURRENCY}?\s*'
    rf'(?P<unit_price>{AMOUNT})\s*=\s*{CURRENCY}?\s*(?P<amount>{AMOUNT_DEC})$'
)
# Item codes are upper-case and contain at least one digit (case-sensitive)
ITEM_CODE_DESC_AMOUNT = re.compile(
    rf'^(?P<reference>(?=[A-Z0-9\-]*\d)[A-Z0-9\-]{{3,15}})\s+(?P<description>.{{3,60}}?)\s+'
    rf'{CURRENCY}?\s*(?P<amount>{AMOUNT_DEC})$'
)
ITEM_DESC_AMOUNT = re.compile(
    rf'^(?P<description>.{{3,80}}?)\s+{CURRENCY}?\s*(?P<amount>{AMOUNT_DEC})$'
)

COLUMN_WORDS = {
    'description', 'item', 'items', 'product', 'products', 'service', 'services',
    'qty', 'quantity', 'price', 'unit', 'rate', 'amount', 'total', 'cost',
    'hours', 'hrs', 'no', 'no.', '#', 'sku', 'code', 'details', 'line', 'each'
}

HEADER_PATTERNS = [
    re.compile(r'^(?:description|item|product|service|qty|quantity|price|rate|amount|total)[\s|]*$', re.IGNORECASE),
    re.compile(r'^[\-=_\s|]+$'),
    re.compile(r'^(?:invoice|bill|statement|estimate|receipt)\b', re.IGNORECASE),
    re.compile(r'^(?:(?:date|number|ref)\b|#)', re.IGNORECASE),
]

SUMMARY_KEYWORDS = [
    'subtotal', 'sub-total', 'sub total',
    'total', 'grand total', 'final total',
    'tax', 'vat', 'gst', 'hst', 'sst', 'sales tax',
    'freight', 'shipping', 'delivery',
    'discount', 'credit', 'adjustment',
    'balance', 'due', 'paid', 'amount due',
    'net amount', 'gross amount',
    'handling', 'processing fee',
    'service charge', 'convenience fee'
]

# Optional row index ("3." or "3)") before a summary keyword
SUMMARY_PREFIX = r'^(?:\d{1,3}[.)]\s+)?'

# After an ambiguous keyword: an optional "(8%)" and then punctuation, an
# amount or the end of the line.
SUMMARY_TAIL = r'\s*(?:\([^)]*\)\s*)?(?:[:\-=@$£€¥₹\d]|$)'

# A summary keyword only disqualifies a line when it starts the line, so
# "Tax Rate 8% 4.00" is a summary line and "Premium Widget Tax Advisory"
# is not. Words that also open ordinary product names ("Delivery of
# pallets", "Credit card reader") additionally need SUMMARY_TAIL.
SUMMARY_ANCHORS = [
    re.compile(rf'{SUMMARY_PREFIX}(?:{phrase})\b', re.IGNORECASE)
    for phrase in (
        r'(?:sub[\s\-]*)?total',
        r'(?:grand|final|net|gross)\s+(?:total|amount)',
        r'(?:sales\s+)?(?:tax|vat|gst|hst|sst)',
        r'freight|shipping|handling',
        r'(?:less\s+)?discounts?',
        r'balance|amount\s+(?:due|paid|owing)|payments?\s+received',
        r'(?:processing|convenience)\s+fee|service\s+charge',
    )
] + [
    re.compile(rf'{SUMMARY_PREFIX}(?:{phrase}){SUMMARY_TAIL}', re.IGNORECASE)
    for phrase in (
        r'delivery(?:\s+(?:charges?|fees?|costs?))?',
        r'(?:less\s+)?(?:credit|adjustment)s?',
        r'paid',
    )
]

NON_ITEM_DESCRIPTIONS = [
    re.compile(r'^[\d\s\-.$£€¥₹,%#/:]+$'),
    re.compile(r'thank\s*you', re.IGNORECASE),
    re.compile(r'\bpage\s*\d+', re.IGNORECASE),
    re.compile(r'\bcontinued\b', re.IGNORECASE),
    re.compile(r'^total\b', re.IGNORECASE),
]

LEADING_INDEX = re.compile(r'^\d{1,3}[.)]\s+')
TRAILING_AMOUNTS = re.compile(rf'(?:\s*{CURRENCY}\s*\d[\d,]*(?:\.\d+)?)+$')

CATEGORY_KEYWORDS = {
    'Software': ['software', 'license', 'subscription', 'saas', 'app'],
    'Hardware': ['hardware', 'computer', 'server', 'device', 'equipment'],
    'Service': ['service', 'consulting', 'support', 'maintenance', 'training'],
    'Hosting': ['hosting', 'cloud', 'server', 'storage', 'bandwidth'],
    'Development': ['development', 'programming', 'coding', 'custom'],
    'Security': ['security', 'firewall', 'antivirus', 'ssl', 'encryption'],
    'Design': ['design', 'graphic', 'ui', 'ux', 'creative'],
    'Marketing': ['marketing', 'advertising', 'seo', 'social', 'campaign'],
}

# =============================================================================
# SCALAR FIELDS
# =============================================================================

INVOICE_NUMBER = [
    re.compile(rf'\binvoice{H}(?:no\.?|number|num\.?|#|id)?{H}[:#]?{H}#?{H}([A-Z0-9][A-Z0-9\-/]{{2,}})', FLAGS),
    re.compile(rf'\b(?:inv|bill){H}(?:no\.?|#|number){H}[:#]?{H}([A-Z0-9][\w\-/]{{2,}})', FLAGS),
    re.compile(rf'(?:^|\s)#{H}([A-Z]{{0,5}}-?\d[\w\-]{{2,}})', FLAGS),
]

INVOICE_DATE = [
    re.compile(
        rf'(?<!due\s)(?<!order\s)\b(?:invoice{H})?(?:date|dated|issued(?:{H}on)?|issue{H}date)'
        rf'(?:{H}of{H}issue)?{H}[:\-]?{H}({DATE})',
        FLAGS
    ),
    # Any date on a line that does not talk about due or order dates
    re.compile(rf'^(?![^\n]*\b(?:due|order|ship)\b)[^\n]*?(?<![\w/])({DATE})', FLAGS),
]

DUE_DATE = [
    re.compile(rf'\b(?:due{H}date|payment{H}due|due{H}by|due{H}on|due){H}[:\-]?{H}({DATE})', FLAGS),
]

ORDER_DATE = [
    re.compile(rf'\border{H}date{H}[:\-]?{H}({DATE})', FLAGS),
]

VENDOR_NAME_LABELED = [
    re.compile(rf'^{H}(?:from|vendor|supplier|seller|sold{H}by|issued{H}by|company){H}:{H}(.+)$', FLAGS),
]
COMPANY_SUFFIX = re.compile(
    r'^(.{2,60}?\b(?:Inc|LLC|L\.L\.C|Ltd|Limited|Corp|Corporation|Co|Company|GmbH|PLC|LLP|Pvt|S\.A|AG)\.?)\s*$',
    FLAGS
)
COMPANY_LINE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9 &.,'\-]{1,60}$")
VENDOR_STOPWORDS = re.compile(
    r'\b(?:invoice|bill|date|total|subtotal|page|receipt|statement|tax|due|amount|qty|'
    r'quantity|description|price|balance|phone|email|tel|fax|www|order|terms|ship|customer)\b',
    re.IGNORECASE
)
AMOUNT_LIKE = re.compile(rf'{CURRENCY}?\s*\d[\d,]*\.\d{{2}}\b')

ADDRESS_LABELED = [
    re.compile(rf'^{H}(?:address|addr\.?){H}:{H}(.+)$', FLAGS),
]
STREET_LINE = re.compile(
    r'^(\d{1,6}\s+[A-Za-z0-9 .\'\-]+?\b(?:Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Lane|Ln|'
    r'Drive|Dr|Way|Court|Ct|Place|Pl|Parkway|Pkwy|Highway|Hwy|Suite|Ste)\b\.?.*)$',
    re.IGNORECASE
)
# "Springfield, IL 62704" or "London, UK SW1A 1AA"
CITY_LINE = re.compile(r"^[A-Za-z .'\-]+,\s*[A-Za-z .]+\s+[A-Z0-9]{3,10}(?:[\s\-][A-Z0-9]{3,4})?$")

EMAIL_FIELD = [
    re.compile(rf'\b(?:e-?mail){H}:?{H}({EMAIL})', FLAGS),
    re.compile(rf'({EMAIL})', FLAGS),
]

PHONE_FIELD = [
    re.compile(rf'\b(?:phone|tel|telephone|ph|mobile|cell)\.?{H}(?:no\.?)?{H}[:#]?{H}({PHONE})', FLAGS),
    re.compile(r'(?<![\w.])(\(?\d{3}\)?[\s.\-]?\d{3}[\s.\-]\d{4})(?![\w.])', FLAGS),
]

WEBSITE = [
    re.compile(rf'\b(?:website|web|url){H}:{H}(\S+)', FLAGS),
    re.compile(r'\b((?:https?://)?www\.[A-Za-z0-9\-]+(?:\.[A-Za-z0-9\-]+)+(?:/\S*)?)', FLAGS),
    re.compile(r'\b(https?://[A-Za-z0-9\-]+(?:\.[A-Za-z0-9\-]+)+(?:/\S*)?)', FLAGS),
]

TAX_ID = [
    re.compile(
        rf'\b(?:tax{H}id|tin|ein|vat{H}(?:no\.?|number|reg(?:istration)?(?:{H}no\.?)?)|gstin|abn)(?!\w)'
        rf'{H}[:#]?{H}([A-Z0-9][A-Z0-9\-]{{5,20}})',
        FLAGS
    ),
]

BILL_TO_LABEL = re.compile(
    rf'^{H}(?:(?:bill(?:ed)?{H}to|sold{H}to|invoice{H}to)\b{H}:?|(?:customer|client){H}:){H}(.*)$',
    re.IGNORECASE
)
SECTION_END = re.compile(
    r'^(?:ship(?:ped)?\s*to|invoice|date|due|terms|description|item|qty|p\.?o\.?|order|from)\b',
    re.IGNORECASE
)

SUBTOTAL = [amount_line(rf'sub[\s\-]*total|net{H}(?:amount|total)')]
TAX = [amount_line(r'(?:sales\s+)?(?:tax|vat|gst|hst|sst)(?:\s+amount)?|total\s+tax')]
TOTAL = [
    amount_line(r'grand\s+total'),
    amount_line(r'total\s+(?:amount\s+)?due|invoice\s+total|total\s+amount'),
    amount_line(r'total(?!\s+(?:tax|qty|quantity|items?|units|hours|discount)\b)'),
]
DISCOUNT = [amount_line(r'(?:less\s+)?discount')]
AMOUNT_PAID = [amount_line(r'amount\s+paid|paid|payments?\s+received|less\s+payments?')]
BALANCE_DUE = [amount_line(r'balance(?:\s+due)?|amount\s+due|amount\s+owing')]
TAX_RATE = [
    re.compile(rf'\b(?:tax|vat|gst|hst|sst)\b[^\n%]{{0,20}}?(\d{{1,2}}(?:\.\d{{1,3}})?){H}%', FLAGS),
]

PAYMENT_METHOD = [
    re.compile(rf'\b(?:payment{H}method|paid{H}by|payment{H}mode|pay{H}by){H}:{H}(.+)$', FLAGS),
    re.compile(
        r'\b(credit\s+card|debit\s+card|bank\s+transfer|wire\s+transfer|direct\s+deposit|'
        r'paypal|cheque|check|cash|visa|mastercard|amex)\b',
        FLAGS
    ),
]
PAYMENT_TERMS = [
    re.compile(rf'\b(?:payment{H})?terms{H}:{H}(.+)$', FLAGS),
    re.compile(r'\b(net\s*\d{1,3}|due\s+on\s+receipt|cash\s+on\s+delivery)\b', FLAGS),
]
BANK_DETAILS = [
    re.compile(
        rf'\b(?:bank{H}details|bank|account{H}(?:no\.?|number|#)|iban|swift(?:{H}code)?|routing{H}(?:no\.?|number)?)'
        rf'{H}[:#]{H}(.+)$',
        FLAGS
    ),
]

ORDER_NUMBER = [
    re.compile(
        rf'\b(?:p\.?o\.?|purchase{H}order|order){H}(?:no\.?|number|#)?{H}[:#]{H}([A-Z0-9][\w\-/]{{2,}})',
        FLAGS
    ),
]
REFERENCE = [
    re.compile(rf'\b(?:reference|ref\.?){H}(?:no\.?|number|#)?{H}[:#]{H}([A-Z0-9][\w\-/]{{2,}})', FLAGS),
]
NOTES = [
    re.compile(rf'^{H}(?:notes?|comments?|memo|remarks){H}:{H}(.+)$', FLAGS),
]
