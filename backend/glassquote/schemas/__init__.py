from .quote import (
    ServiceSelection,
    AdjustmentIn,
    CalculateItemRequest,
    AddItemRequest,
    ServiceLineRead,
    AdjustmentLineRead,
    PriceBreakdown,
    AddItemResponse,
    CartItem,
    ProjectAddress,
    GenerateQuoteRequest,
    GenerateQuoteResponse,
    SendToVendorRequest,
    SendToVendorResponse,
    QuoteItemRead,
    QuoteRead,
    QuoteSummary,
    QuoteListResponse,
)
