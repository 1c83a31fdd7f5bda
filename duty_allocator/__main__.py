# duty_allocator/__main__.py

"""
Main script for running the exam duty allocator.

Usage:
    python -m duty_allocator DATASET.json [options]
"""

import argparse
import sys

from .exceptions import FileContentError, FileReadingError
from .scheduler import STRATEGIES, DutyScheduler
from .allocator import POLICIES


def main(argv=None):
    """Main function to run the allocator from command line."""
    parser = argparse.ArgumentParser(
        description='Exam Duty Allocator - Assign invigilation duties fairly'
    )

    # Required arguments
    parser.add_argument('input_file',
                        help='Exam dataset JSON (slots, faculty, quotas, unavailability)')

    # Optional arguments
    parser.add_argument('-o', '--output',
                        default='duty_schedule.xlsx',
                        help='Output workbook for the schedule (default: duty_schedule.xlsx)')

    parser.add_argument('--json',
                        dest='json_output',
                        default=None,
                        help='Also write the full result as JSON to this file')

    parser.add_argument('-s', '--strategy',
                        choices=STRATEGIES,
                        default='greedy',
                        help='Allocation strategy (default: greedy)')

    parser.add_argument('--back-to-back',
                        choices=POLICIES,
                        default='warn',
                        help='Treat back-to-back duties as a warning or an error (default: warn)')

    parser.add_argument('--quota',
                        choices=POLICIES,
                        default='warn',
                        help='Treat quota overruns as a warning or an error (default: warn)')

    parser.add_argument('-t', '--timeout',
                        type=int,
                        default=60,
                        help='CP-SAT time limit in seconds (default: 60)')

    parser.add_argument('--validate-only',
                        action='store_true',
                        help='Only read and summarize the dataset without allocating')

    args = parser.parse_args(argv)

    scheduler = DutyScheduler(
        strategy=args.strategy,
        back_to_back_policy=args.back_to_back,
        quota_policy=args.quota,
        solver_timeout=args.timeout,
    )

    print(f"Reading exam dataset: {args.input_file}")
    try:
        scheduler.read_dataset_file(args.input_file)
    except (FileReadingError, FileContentError) as e:
        print("Input file validation failed:")
        print(f"  - {e}")
        sys.exit(1)

    scheduler.print_summary()

    if args.validate_only:
        sys.exit(0)

    success = scheduler.schedule()
    scheduler.print_solution()

    if scheduler.result.assignments:
        scheduler.write_solution_to_file(args.output)
    if args.json_output:
        scheduler.write_solution_json(args.json_output)

    if not success:
        print("\nAllocation incomplete.")
        print("Consider:")
        print("  - Adding rooms so each slot has one per regular duty")
        print("  - Enlarging the buffer-eligible pool")
        print("  - Relaxing quotas or unavailability")
        sys.exit(1)


if __name__ == '__main__':
    main()
