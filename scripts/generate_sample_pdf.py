#!/usr/bin/env python3
"""
Generate a synthetic investor presentation PDF for ingestion trials.

Page 1 is a short bullet slide (chunked as one per-page chunk), pages 2-3
are dense management commentary (chunked recursively). Figures are
synthetic but internally consistent, so questions such as "Plot PAT from
FY21 to FY24" produce a chart.

The file name follows the <Company>-<Title>-<YYYYMMDD>.pdf convention the
ingestion pipeline reads metadata from.

Usage:
    python scripts/generate_sample_pdf.py [--out data/samples]

Output:
    data/samples/Acme-Q3FY24-Investor-Presentation-20240115.pdf
"""

import argparse
from pathlib import Path

from fpdf import FPDF

FILENAME = "Acme-Q3FY24-Investor-Presentation-20240115.pdf"


class InvestorDeck(FPDF):
    """Custom PDF with a running header for an investor presentation."""

    def header(self):
        self.set_font("Helvetica", "B", 9)
        self.set_text_color(100, 100, 100)
        self.cell(0, 8, "Acme Ltd - Q3 FY24 Investor Presentation", align="C",
                  new_x="LMARGIN", new_y="NEXT")
        self.ln(4)

    def slide_title(self, title: str):
        self.set_font("Helvetica", "B", 20)
        self.set_text_color(0, 0, 0)
        self.cell(0, 14, title, new_x="LMARGIN", new_y="NEXT")
        self.ln(4)

    def bullet(self, text: str):
        self.set_font("Helvetica", "", 13)
        self.set_text_color(30, 30, 30)
        self.cell(0, 9, f"- {text}", new_x="LMARGIN", new_y="NEXT")

    def section_title(self, title: str):
        self.set_font("Helvetica", "B", 13)
        self.set_text_color(0, 0, 0)
        self.ln(4)
        self.cell(0, 9, title, new_x="LMARGIN", new_y="NEXT")

    def body_text(self, text: str):
        self.set_font("Helvetica", "", 10)
        self.set_text_color(30, 30, 30)
        self.multi_cell(0, 5.5, text)
        self.ln(2)


def generate_deck(out_dir: Path) -> Path:
    pdf = InvestorDeck()
    pdf.set_auto_page_break(auto=True, margin=20)

    # =========================================================================
    # Page 1: Highlights slide
    # =========================================================================
    pdf.add_page()
    pdf.slide_title("Q3 FY24 HIGHLIGHTS")
    pdf.bullet("Revenue of Rs 4,820 Cr, up 18% YoY")
    pdf.bullet("EBITDA margin expanded to 21.4% from 19.8%")
    pdf.bullet("PAT of Rs 612 Cr, up 24% YoY")
    pdf.bullet("Net cash position of Rs 1,150 Cr")
    pdf.bullet("Order book at Rs 12,400 Cr, 2.6x trailing revenue")

    # =========================================================================
    # Page 2: Management commentary (dense text)
    # =========================================================================
    pdf.add_page()
    pdf.section_title("Management Commentary")
    pdf.body_text(
        "Revenue for the quarter was Rs 4,820 Cr compared with Rs 4,085 Cr "
        "in Q3 FY23, an increase of 18% year over year. Growth was broad "
        "based: the industrial segment grew 22% on the back of strong "
        "execution of the order book, while the consumer segment grew 11% "
        "despite a soft festive season in the northern markets. Exports "
        "contributed 31% of revenue, up from 27% a year ago, as new "
        "distribution agreements in the Middle East and South East Asia "
        "started to scale."
    )
    pdf.body_text(
        "EBITDA for the quarter was Rs 1,031 Cr and the EBITDA margin "
        "expanded by 160 basis points to 21.4%. The expansion came from "
        "operating leverage, a better product mix and lower input costs "
        "for steel and copper. Employee costs rose 9% year over year, "
        "below revenue growth, and other expenses were flat as a share "
        "of revenue. EBIT margin, after depreciation on the new capacity "
        "commissioned in the second quarter, was 17.9%."
    )
    pdf.body_text(
        "Profit after tax (PAT) was Rs 612 Cr, up 24% year over year. "
        "Annual PAT has grown steadily: PAT was 310 Cr in FY21, 405 Cr in "
        "FY22 and 520 Cr in FY23, and the company expects to close FY24 "
        "above 2,000 Cr of cumulative four-year profit. The effective tax "
        "rate for the quarter was 25.2%, in line with guidance."
    )

    # =========================================================================
    # Page 3: Balance sheet and outlook (dense text)
    # =========================================================================
    pdf.add_page()
    pdf.section_title("Balance Sheet and Outlook")
    pdf.body_text(
        "The company remained net cash positive with cash and equivalents "
        "of Rs 1,150 Cr at the end of the quarter. Working capital days "
        "improved to 48 from 55 a year ago, driven by faster collections "
        "from government customers. Capital expenditure for the first nine "
        "months was Rs 640 Cr, largely towards the new plant, which is "
        "now operating at 62% utilisation and is expected to reach 80% by "
        "the end of FY25."
    )
    pdf.body_text(
        "Management reiterated revenue growth guidance of 15-17% for FY24 "
        "and an EBITDA margin band of 20-22%. The order book of Rs 12,400 "
        "Cr provides visibility for the next two years. Key risks include "
        "commodity price volatility, delays in government project "
        "approvals and currency movements in export markets. The board "
        "declared an interim dividend of Rs 4 per share."
    )
    pdf.set_font("Helvetica", "I", 8)
    pdf.set_text_color(120, 120, 120)
    pdf.multi_cell(
        0, 5,
        "SYNTHETIC DATA: generated for ingestion and retrieval trials. "
        "Acme Ltd is fictional and these figures are not financial results.",
    )

    out_dir.mkdir(parents=True, exist_ok=True)
    output_path = out_dir / FILENAME
    pdf.output(str(output_path))
    return output_path


def main():
    parser = argparse.ArgumentParser(description="Generate a sample investor deck PDF")
    parser.add_argument("--out", default="data/samples", help="Output directory")
    args = parser.parse_args()

    output_path = generate_deck(Path(args.out))
    print(f"Generated: {output_path} ({output_path.stat().st_size:,} bytes)")


if __name__ == "__main__":
    main()
